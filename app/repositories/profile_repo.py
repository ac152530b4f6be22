# app/repositories/profile_repo.py
import uuid

from sqlalchemy import delete, func, or_
from sqlmodel import Session, select

from app.models.admin import AdminAllowedEmail
from app.models.profile import Profile, ProviderDocument, ProviderServiceArea


class ProfileRepository:
    """
    Data access layer for profiles, supplier service areas and documents.

    Responsibilities:
      - Pure DB operations (CRUD + queries)
      - No FastAPI, no HTTP, no business logic
    """

    # ----- Profiles -----

    def get_by_id(self, session: Session, profile_id: uuid.UUID) -> Profile | None:
        """Return a Profile by primary key, or None if not found."""
        return session.get(Profile, profile_id)

    def get_by_email(self, session: Session, email: str) -> Profile | None:
        """Return a Profile by unique email, or None if not found."""
        stmt = select(Profile).where(Profile.email == email)
        return session.exec(stmt).first()

    def update(self, session: Session, profile: Profile) -> Profile:
        """Persist changes to an existing Profile."""
        session.add(profile)
        session.commit()
        session.refresh(profile)
        return profile

    def list_providers(
        self,
        session: Session,
        statuses: list[str] | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 50,
        oldest_first: bool = False,
    ) -> list[Profile]:
        """
        Supplier listing for the admin directory / verification queue.

        Args:
            statuses: restrict to these verification statuses
            search: case-insensitive match on name, email or phone
        """
        stmt = select(Profile).where(Profile.role == "supplier")
        if statuses:
            stmt = stmt.where(Profile.verification_status.in_(statuses))
        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Profile.name).like(pattern),
                    func.lower(Profile.email).like(pattern),
                    Profile.phone.like(pattern),
                )
            )
        order = Profile.created_at.asc() if oldest_first else Profile.created_at.desc()
        stmt = stmt.order_by(order).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_providers(self, session: Session, statuses: list[str]) -> int:
        stmt = (
            select(func.count())
            .select_from(Profile)
            .where(Profile.role == "supplier")
            .where(Profile.verification_status.in_(statuses))
        )
        return session.exec(stmt).one()

    def count_active_providers(self, session: Session) -> int:
        stmt = (
            select(func.count())
            .select_from(Profile)
            .where(Profile.role == "supplier")
            .where(Profile.verification_status == "approved")
            .where(Profile.is_available == True)  # noqa: E712
        )
        return session.exec(stmt).one()

    def list_admin_ids(self, session: Session) -> list[uuid.UUID]:
        """
        Profiles with admin access: role admin, or email in admin_allowed_emails.
        """
        stmt = select(Profile.id).where(
            or_(
                Profile.role == "admin",
                func.lower(Profile.email).in_(select(AdminAllowedEmail.email)),
            )
        )
        return list(session.exec(stmt).all())

    # ----- Service areas -----

    def list_service_areas(self, session: Session, provider_id: uuid.UUID) -> list[str]:
        stmt = (
            select(ProviderServiceArea.comuna_id)
            .where(ProviderServiceArea.provider_id == provider_id)
            .order_by(ProviderServiceArea.comuna_id)
        )
        return list(session.exec(stmt).all())

    def replace_service_areas(
        self,
        session: Session,
        provider_id: uuid.UUID,
        comuna_ids: list[str],
    ) -> None:
        """Replace the whole set. No commit; caller owns the transaction."""
        session.execute(
            delete(ProviderServiceArea).where(
                ProviderServiceArea.provider_id == provider_id
            )
        )
        session.add_all(
            ProviderServiceArea(provider_id=provider_id, comuna_id=c)
            for c in comuna_ids
        )
        session.flush()

    # ----- Documents -----

    def list_documents(
        self,
        session: Session,
        provider_id: uuid.UUID,
    ) -> list[ProviderDocument]:
        stmt = (
            select(ProviderDocument)
            .where(ProviderDocument.provider_id == provider_id)
            .order_by(ProviderDocument.uploaded_at.desc())
        )
        return session.exec(stmt).all()

    def get_document(
        self,
        session: Session,
        document_id: uuid.UUID,
    ) -> ProviderDocument | None:
        return session.get(ProviderDocument, document_id)

    def create_document(self, session: Session, doc: ProviderDocument) -> ProviderDocument:
        session.add(doc)
        session.commit()
        session.refresh(doc)
        return doc

    def delete_document(self, session: Session, doc: ProviderDocument) -> None:
        session.delete(doc)
        session.commit()
