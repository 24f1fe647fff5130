"""PostgreSQL implementation of UserRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import ApplicationUserRow
from app.models.user import ApplicationUser, normalize_email, validate_email
from app.repos.pg_common import delete_row, update_row
from app.repos.store_errors import translate_store_errors

_NEWEST_FIRST = (ApplicationUserRow.created_at.desc(), ApplicationUserRow.id.desc())


@translate_store_errors
class PgUserRepo:
    """Satisfies the UserRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _many(self, *criteria: Any) -> list[ApplicationUser]:
        stmt = select(ApplicationUserRow).where(*criteria).order_by(*_NEWEST_FIRST)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_user(r) for r in rows]

    async def list_all(self) -> list[ApplicationUser]:
        return await self._many()

    async def get_by_id(self, user_id: int) -> ApplicationUser | None:
        row = await self._session.get(ApplicationUserRow, user_id)
        return _row_to_user(row) if row is not None else None

    async def get_by_email(self, email: str) -> ApplicationUser | None:
        stmt = select(ApplicationUserRow).where(
            ApplicationUserRow.email == normalize_email(email)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_user(row) if row is not None else None

    async def list_by_organization(self, org_id: int) -> list[ApplicationUser]:
        return await self._many(ApplicationUserRow.organization_id == org_id)

    async def count_by_organization(self, org_id: int) -> int:
        stmt = select(func.count()).where(ApplicationUserRow.organization_id == org_id)
        return int((await self._session.execute(stmt)).scalar_one())

    async def list_pending(self) -> list[ApplicationUser]:
        return await self._many(ApplicationUserRow.pending.is_(True))

    async def add(self, user: ApplicationUser) -> ApplicationUser:
        row = ApplicationUserRow(
            email=normalize_email(user.email),
            name=user.name,
            organization_id=user.organization_id,
            is_admin=user.is_admin,
            can_add_people=user.can_add_people,
            can_organize_events=user.can_organize_events,
            can_manage_media=user.can_manage_media,
            receive_cancel_event_notification=user.receive_cancel_event_notification,
            pending=user.pending,
            phone_number=user.phone_number,
            country_dial_code=user.country_dial_code,
            birth_date=user.birth_date,
            profile_url=user.profile_url,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_user(row)

    async def update(self, user_id: int, **changes: Any) -> ApplicationUser | None:
        if "email" in changes:
            changes["email"] = validate_email(changes["email"])
        row = await update_row(self._session, ApplicationUserRow, user_id, changes)
        return _row_to_user(row) if row is not None else None

    async def approve(self, user_id: int) -> ApplicationUser | None:
        return await self.update(user_id, pending=False)

    async def delete(self, user_id: int) -> bool:
        return await delete_row(self._session, ApplicationUserRow, user_id)


def _row_to_user(row: ApplicationUserRow) -> ApplicationUser:
    return ApplicationUser(
        id=row.id,
        email=row.email,
        name=row.name,
        organization_id=row.organization_id,
        is_admin=row.is_admin,
        can_add_people=row.can_add_people,
        can_organize_events=row.can_organize_events,
        can_manage_media=row.can_manage_media,
        receive_cancel_event_notification=row.receive_cancel_event_notification,
        pending=row.pending,
        phone_number=row.phone_number,
        country_dial_code=row.country_dial_code,
        birth_date=row.birth_date,
        profile_url=row.profile_url,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
