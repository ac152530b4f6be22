# app/services/settings_service.py
import logging

from sqlmodel import Session

from app.models.profile import Profile
from app.repositories.settings_repo import SettingsRepository
from app.schemas.settings import (
    OfferSettings,
    OfferSettingsUpdate,
    PricingSettings,
    PricingSettingsUpdate,
    PricingTier,
)
from app.utils.commission import round_half_up

logger = logging.getLogger(__name__)

OFFER_SETTING_DEFAULTS: dict[str, int] = {
    "offer_validity_default": 30,
    "offer_validity_min": 15,
    "offer_validity_max": 120,
    "request_timeout_hours": 4,
    "dispute_window_hours": 48,
}

PRICING_DEFAULTS: dict[str, dict[str, int]] = {
    "price_100l": {"min": 4000, "suggested": 5000, "max": 6500},
    "price_1000l": {"min": 16000, "suggested": 20000, "max": 26000},
    "price_5000l": {"min": 60000, "suggested": 75000, "max": 100000},
    "price_10000l": {"min": 110000, "suggested": 140000, "max": 180000},
}

URGENCY_SURCHARGE_DEFAULT = 10
COMMISSION_DEFAULT = 15

TIER_KEYS = ("price_100l", "price_1000l", "price_5000l", "price_10000l")


def tier_key_for(amount: int) -> str:
    """Pricing tier for an order size (liters)."""
    if amount <= 100:
        return "price_100l"
    if amount <= 1000:
        return "price_1000l"
    if amount <= 5000:
        return "price_5000l"
    return "price_10000l"


class SettingsService:
    """
    Runtime platform settings stored in admin_settings.

    Responsibilities:
      - read offer timing and pricing with code defaults for missing keys
      - validate and persist admin updates
      - derive offer price and supplier commission percent
    """

    def __init__(self, repo: SettingsRepository):
        self.repo = repo

    # -------- Offer timing --------

    def get_offer_settings(self, session: Session) -> OfferSettings:
        stored = self.repo.get_values(session, list(OFFER_SETTING_DEFAULTS))
        merged = dict(OFFER_SETTING_DEFAULTS)
        for key, value in stored.items():
            try:
                merged[key] = int(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric admin setting %s=%r", key, value)
        return OfferSettings(**merged)

    def update_offer_settings(
        self,
        session: Session,
        payload: OfferSettingsUpdate,
        admin: Profile,
    ) -> OfferSettings:
        """
        Persist offer timing settings.

        Bounds (min <= default <= max, all >= 1) are enforced by the schema.
        """
        self.repo.upsert_values(session, payload.model_dump(exclude_none=True), admin.id)
        logger.info("Offer settings updated by %s", admin.email)
        return self.get_offer_settings(session)

    # -------- Pricing --------

    def get_pricing(self, session: Session) -> PricingSettings:
        keys = [*TIER_KEYS, "urgency_surcharge_percent", "default_commission_percent"]
        stored = self.repo.get_values(session, keys)

        tiers: dict[str, PricingTier] = {}
        for key in TIER_KEYS:
            raw = stored.get(key)
            if not isinstance(raw, dict):
                raw = PRICING_DEFAULTS[key]
            tiers[key] = PricingTier(**raw)

        return PricingSettings(
            **tiers,
            urgency_surcharge_percent=int(
                stored.get("urgency_surcharge_percent", URGENCY_SURCHARGE_DEFAULT)
            ),
            default_commission_percent=int(
                stored.get("default_commission_percent", COMMISSION_DEFAULT)
            ),
        )

    def update_pricing(
        self,
        session: Session,
        payload: PricingSettingsUpdate,
        admin: Profile,
    ) -> PricingSettings:
        self.repo.upsert_values(session, payload.model_dump(exclude_none=True), admin.id)
        logger.info("Pricing updated by %s", admin.email)
        return self.get_pricing(session)

    # -------- Derived values --------

    def price_for(self, session: Session, amount: int, is_urgent: bool) -> int:
        """
        Offer price (CLP) for an order size.

        Suggested tier price, plus the urgency surcharge for urgent requests.
        """
        pricing = self.get_pricing(session)
        base = getattr(pricing, tier_key_for(amount)).suggested
        if not is_urgent:
            return base
        return round_half_up(base * (100 + pricing.urgency_surcharge_percent) / 100)

    def commission_percent_for(self, session: Session, provider: Profile) -> float:
        """Supplier override when set, else the platform default."""
        if provider.commission_override is not None:
            return float(provider.commission_override)
        return float(self.get_pricing(session).default_commission_percent)

