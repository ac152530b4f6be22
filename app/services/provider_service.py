# app/services/provider_service.py
import logging
import uuid
from datetime import datetime

from fastapi import HTTPException, status
from sqlmodel import Session

from app.core.clock import utcnow
from app.core.constants import COMUNAS
from app.core.storage_utils import (
    create_signed_url,
    delete_from_storage,
    document_path,
    generate_filename,
    upload_to_storage,
)
from app.models.commission import WithdrawalRequest
from app.models.profile import Profile, ProviderDocument
from app.repositories.commission_repo import CommissionRepository
from app.repositories.offer_repo import OfferRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.request_repo import WaterRequestRepository
from app.schemas.commission import EarningsRead, LedgerEntryRead
from app.schemas.profile import (
    ActiveDeliverySummary,
    AvailabilityResult,
    AvailabilityUpdate,
    DocumentRead,
    ProviderRegister,
    ServiceAreaRead,
)
from app.utils.formatting import document_expiration_status

logger = logging.getLogger(__name__)


# --- Upload config ---

MAX_DOCUMENT_BYTES = 10 * 1024 * 1024  # 10MB per file

ALLOWED_DOCUMENT_CONTENT_TYPES: dict[str, str] = {
    "application/pdf": "pdf",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}

# Suppliers in these states may (re)submit the registration form
RESUBMITTABLE_STATUSES = ("rejected", "more_info_needed")


def provider_balance(totals: dict[str, int]) -> int:
    """Commission still owed: owed minus paid."""
    return totals.get("commission_owed", 0) - totals.get("commission_paid", 0)


class ProviderService:
    """
    Supplier self-service.

    Responsibilities:
      - onboarding (registration / resubmission)
      - verification documents in the private Storage bucket
      - service areas and availability
      - earnings dashboard and commission payments
    """

    def __init__(
        self,
        profile_repo: ProfileRepository,
        request_repo: WaterRequestRepository,
        offer_repo: OfferRepository,
        commission_repo: CommissionRepository,
    ):
        self.profile_repo = profile_repo
        self.request_repo = request_repo
        self.offer_repo = offer_repo
        self.commission_repo = commission_repo

    # ----- Helpers -----

    @staticmethod
    def _validate_and_get_ext(content_type: str, file_bytes: bytes) -> str:
        if content_type not in ALLOWED_DOCUMENT_CONTENT_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tipo de archivo no permitido. Usa PDF, JPG, PNG o WEBP.",
            )

        if not file_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El archivo está vacío",
            )

        if len(file_bytes) > MAX_DOCUMENT_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail="El archivo es demasiado grande (máximo 10MB)",
            )

        return ALLOWED_DOCUMENT_CONTENT_TYPES[content_type]

    @staticmethod
    def _to_document_read(doc: ProviderDocument, signed: bool = True) -> DocumentRead:
        signed_url = None
        if signed:
            try:
                signed_url = create_signed_url(doc.storage_path)
            except Exception:
                logger.warning("Could not sign document %s", doc.id, exc_info=True)
        return DocumentRead(
            id=doc.id,
            provider_id=doc.provider_id,
            document_type=doc.document_type,
            original_filename=doc.original_filename,
            storage_path=doc.storage_path,
            expires_at=doc.expires_at,
            expiration_status=document_expiration_status(doc.expires_at),
            uploaded_at=doc.uploaded_at,
            signed_url=signed_url,
        )

    # ----- Onboarding -----

    def register_provider(
        self,
        session: Session,
        payload: ProviderRegister,
        user: Profile,
    ) -> Profile:
        """
        Turn the caller into a supplier awaiting verification.

        First registration: consumer -> supplier (pending).
        Resubmission: rejected | more_info_needed -> pending.

        Raises:
            HTTPException(403): admins cannot register as suppliers.
            HTTPException(409): application already submitted / decided.
        """
        if user.role == "admin":
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Los administradores no pueden registrarse como proveedores",
            )
        if (
            user.verification_status is not None
            and user.verification_status not in RESUBMITTABLE_STATUSES
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya tienes una solicitud de registro enviada",
            )

        resubmission = user.verification_status is not None

        user.role = "supplier"
        user.verification_status = "pending"
        user.is_available = False
        user.name = payload.name
        user.phone = payload.phone
        user.rut = payload.rut
        user.vehicle_type = payload.vehicle_type
        user.vehicle_capacity = payload.vehicle_capacity
        user.bank_name = payload.bank_name
        user.bank_account_type = payload.bank_account_type
        user.bank_account_number = payload.bank_account_number
        user.rejection_reason = None
        user.updated_at = utcnow()

        self.profile_repo.replace_service_areas(session, user.id, payload.service_areas)
        user = self.profile_repo.update(session, user)
        logger.info(
            "Provider %s %s registration (areas=%s)",
            user.id,
            "resubmitted" if resubmission else "submitted",
            ",".join(payload.service_areas),
        )
        return user

    # ----- Documents -----

    def upload_document(
        self,
        session: Session,
        provider: Profile,
        document_type: str,
        content_type: str,
        file_bytes: bytes,
        original_filename: str | None = None,
        expires_at: datetime | None = None,
    ) -> DocumentRead:
        """
        Upload a verification document.

        Path: providers/<provider_id>/<uuid>.<ext>
        """
        ext = self._validate_and_get_ext(content_type, file_bytes)
        path = document_path(provider.id, ext)
        upload_to_storage(path, file_bytes, content_type)

        doc = self.profile_repo.create_document(
            session,
            ProviderDocument(
                provider_id=provider.id,
                document_type=document_type,
                storage_path=path,
                original_filename=original_filename,
                expires_at=expires_at,
            ),
        )
        logger.info("Provider %s uploaded %s document %s", provider.id, document_type, doc.id)
        return self._to_document_read(doc, signed=False)

    def list_documents(self, session: Session, provider_id: uuid.UUID) -> list[DocumentRead]:
        return [
            self._to_document_read(doc)
            for doc in self.profile_repo.list_documents(session, provider_id)
        ]

    def delete_document(
        self,
        session: Session,
        provider: Profile,
        document_id: uuid.UUID,
    ) -> None:
        doc = self.profile_repo.get_document(session, document_id)
        if not doc:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Documento no encontrado",
            )
        if doc.provider_id != provider.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No autorizado",
            )

        # Best-effort cleanup in Storage
        try:
            delete_from_storage(doc.storage_path)
        except Exception:
            logger.warning("Could not remove %s from storage", doc.storage_path, exc_info=True)

        self.profile_repo.delete_document(session, doc)

    # ----- Service areas -----

    def get_service_areas(self, session: Session, provider: Profile) -> list[ServiceAreaRead]:
        return [
            ServiceAreaRead(comuna_id=c, comuna_name=COMUNAS.get(c, c))
            for c in self.profile_repo.list_service_areas(session, provider.id)
        ]

    def update_service_areas(
        self,
        session: Session,
        provider: Profile,
        comuna_ids: list[str],
    ) -> list[ServiceAreaRead]:
        self.profile_repo.replace_service_areas(session, provider.id, comuna_ids)
        session.commit()
        logger.info("Provider %s service areas set to %s", provider.id, ",".join(comuna_ids))
        return self.get_service_areas(session, provider)

    # ----- Availability -----

    def toggle_availability(
        self,
        session: Session,
        provider: Profile,
        payload: AvailabilityUpdate,
    ) -> AvailabilityResult:
        """
        Switch availability on/off.

        Going offline with deliveries in progress needs confirmation: without
        skip_warning nothing changes and the deliveries are returned.
        """
        if not payload.is_available and not payload.skip_warning:
            in_progress = self.request_repo.list_accepted_for_supplier(session, provider.id)
            if in_progress:
                return AvailabilityResult(
                    is_available=provider.is_available,
                    needs_confirmation=True,
                    active_deliveries=[
                        ActiveDeliverySummary(
                            request_id=request.id,
                            offer_id=offer.id,
                            address=request.address,
                            amount=request.amount,
                            delivery_window=request.delivery_window,
                        )
                        for request, offer in in_progress
                    ],
                )

        provider.is_available = payload.is_available
        provider.updated_at = utcnow()
        provider = self.profile_repo.update(session, provider)
        logger.info("Provider %s availability -> %s", provider.id, provider.is_available)
        return AvailabilityResult(is_available=provider.is_available)

    # ----- Earnings & commission payments -----

    def get_earnings(self, session: Session, provider: Profile) -> EarningsRead:
        completed, gross = self.offer_repo.completed_totals_for_provider(session, provider.id)
        totals = self.commission_repo.totals_for_provider(session, provider.id)
        owed = totals.get("commission_owed", 0)
        paid = totals.get("commission_paid", 0)
        pending_payment = self.commission_repo.get_pending_for_provider(session, provider.id)

        return EarningsRead(
            completed_deliveries=completed,
            gross_earnings=gross,
            commission_owed=owed,
            commission_paid=paid,
            pending_balance=provider_balance(totals),
            net_earnings=gross - owed,
            has_pending_payment=pending_payment is not None,
            ledger=[
                LedgerEntryRead.model_validate(entry)
                for entry in self.commission_repo.list_entries(session, provider.id)
            ],
        )

    def submit_commission_payment(
        self,
        session: Session,
        provider: Profile,
        amount: int,
        receipt: tuple[str, bytes] | None = None,
    ) -> WithdrawalRequest:
        """
        Report a commission payment for admin verification.

        Args:
            receipt: optional (content_type, file_bytes) of the transfer receipt

        Raises:
            HTTPException(400): amount <= 0 or above the pending balance.
            HTTPException(409): another payment is still pending.
        """
        if amount <= 0:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto debe ser mayor a 0",
            )
        balance = provider_balance(self.commission_repo.totals_for_provider(session, provider.id))
        if amount > balance:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El monto excede la comisión pendiente",
            )
        if self.commission_repo.get_pending_for_provider(session, provider.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya tienes un pago pendiente de verificación",
            )

        receipt_path = None
        if receipt is not None:
            content_type, file_bytes = receipt
            ext = self._validate_and_get_ext(content_type, file_bytes)
            receipt_path = upload_to_storage(
                f"receipts/{provider.id}/{generate_filename(ext)}",
                file_bytes,
                content_type,
            )

        payment = self.commission_repo.create_payment(
            session,
            WithdrawalRequest(
                provider_id=provider.id,
                amount=amount,
                receipt_path=receipt_path,
                status="pending",
            ),
        )
        logger.info("Provider %s submitted commission payment %s (%s CLP)", provider.id, payment.id, amount)
        return payment
