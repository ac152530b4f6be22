# app/services/wiring.py
"""
Process-wide service instances.

Repositories and services are stateless (the Session is passed per call),
so routers, cron endpoints and the lifecycle loop share these singletons.
"""

from app.repositories.commission_repo import CommissionRepository
from app.repositories.dispute_repo import DisputeRepository
from app.repositories.notification_repo import NotificationRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.rating_repo import RatingRepository
from app.repositories.request_repo import WaterRequestRepository
from app.repositories.settings_repo import SettingsRepository
from app.services.admin_service import AdminService
from app.services.delivery_service import DeliveryService
from app.services.dispute_service import DisputeService
from app.services.email_service import EmailService
from app.services.lifecycle_service import LifecycleService
from app.services.notification_service import NotificationService
from app.services.offer_service import OfferService
from app.services.profile_service import ProfileService
from app.services.provider_service import ProviderService
from app.services.push_service import PushService
from app.services.rating_service import RatingService
from app.services.request_service import RequestService
from app.services.settings_service import SettingsService
from app.services.settlement_service import SettlementService

# --- Repositories ---
profile_repo = ProfileRepository()
request_repo = WaterRequestRepository()
offer_repo = OfferRepository()
notification_repo = NotificationRepository()
dispute_repo = DisputeRepository()
rating_repo = RatingRepository()
commission_repo = CommissionRepository()
settings_repo = SettingsRepository()

# --- Side-effect channels ---
push_service = PushService(notification_repo)
notification_service = NotificationService(notification_repo, push_service)
email_service = EmailService()

# --- Domain services ---
settings_service = SettingsService(settings_repo)
profile_service = ProfileService(profile_repo)
request_service = RequestService(
    request_repo, offer_repo, profile_repo, notification_service, email_service
)
offer_service = OfferService(
    offer_repo,
    request_repo,
    profile_repo,
    dispute_repo,
    settings_service,
    request_service,
    notification_service,
    email_service,
)
delivery_service = DeliveryService(
    offer_repo,
    request_repo,
    commission_repo,
    settings_service,
    notification_service,
    email_service,
)
lifecycle_service = LifecycleService(
    offer_repo,
    request_repo,
    profile_repo,
    settings_service,
    notification_service,
    email_service,
)
dispute_service = DisputeService(
    dispute_repo, request_repo, profile_repo, settings_service, notification_service
)
rating_service = RatingService(rating_repo, request_repo, profile_repo)
provider_service = ProviderService(profile_repo, request_repo, offer_repo, commission_repo)
admin_service = AdminService(
    profile_repo,
    request_repo,
    offer_repo,
    commission_repo,
    dispute_repo,
    settings_repo,
    provider_service,
    notification_service,
    email_service,
)
settlement_service = SettlementService(commission_repo, profile_repo, notification_service)
