# app/repositories/settings_repo.py
import uuid
from typing import Any

from sqlmodel import Session, select

from app.core.clock import utcnow
from app.models.admin import AdminAllowedEmail, AdminSetting


class SettingsRepository:
    """
    Data access layer for admin_settings and admin_allowed_emails.
    """

    # ---- admin_settings ----

    def get_values(self, session: Session, keys: list[str]) -> dict[str, Any]:
        """
        Return {key: scalar} for the keys that exist.

        Rows store {"value": x}; anything else is ignored.
        """
        stmt = select(AdminSetting).where(AdminSetting.key.in_(keys))
        values: dict[str, Any] = {}
        for row in session.exec(stmt).all():
            if isinstance(row.value, dict) and "value" in row.value:
                values[row.key] = row.value["value"]
        return values

    def upsert_values(
        self,
        session: Session,
        values: dict[str, Any],
        updated_by: uuid.UUID | None,
    ) -> None:
        now = utcnow()
        for key, value in values.items():
            row = session.get(AdminSetting, key)
            if row is None:
                row = AdminSetting(key=key, value={"value": value})
            else:
                row.value = {"value": value}
            row.updated_by = updated_by
            row.updated_at = now
            session.add(row)
        session.commit()

    # ---- admin_allowed_emails ----

    def list_allowed_emails(self, session: Session) -> list[AdminAllowedEmail]:
        stmt = select(AdminAllowedEmail).order_by(AdminAllowedEmail.added_at)
        return session.exec(stmt).all()

    def get_allowed_email(self, session: Session, email: str) -> AdminAllowedEmail | None:
        return session.get(AdminAllowedEmail, email)

    def add_allowed_email(self, session: Session, row: AdminAllowedEmail) -> AdminAllowedEmail:
        session.add(row)
        session.commit()
        session.refresh(row)
        return row

    def delete_allowed_email(self, session: Session, row: AdminAllowedEmail) -> None:
        session.delete(row)
        session.commit()
