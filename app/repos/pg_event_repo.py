"""PostgreSQL implementation of EventRepo (events, schedules, blocks)."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EventBlockRow, EventRow, EventScheduleRow
from app.models.event import Event, EventBlock, EventSchedule, EventStatus
from app.repos.pg_common import delete_row, update_row
from app.repos.store_errors import translate_store_errors


@translate_store_errors
class PgEventRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _events(self, *criteria: Any, ascending: bool = False) -> list[Event]:
        order = (
            (EventRow.start_date.asc(), EventRow.id.asc())
            if ascending
            else (EventRow.start_date.desc(), EventRow.id.desc())
        )
        stmt = select(EventRow).where(*criteria).order_by(*order)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_event(r) for r in rows]

    # --- events ---

    async def list_all(self) -> list[Event]:
        return await self._events()

    async def list_by_organization(self, org_id: int) -> list[Event]:
        return await self._events(EventRow.organization_id == org_id)

    async def get_by_id(self, event_id: int) -> Event | None:
        row = await self._session.get(EventRow, event_id)
        return _row_to_event(row) if row is not None else None

    async def list_by_status(self, org_id: int, status: EventStatus) -> list[Event]:
        return await self._events(
            EventRow.organization_id == org_id, EventRow.status == status.value
        )

    async def list_upcoming(self, org_id: int, today: date) -> list[Event]:
        return await self._events(
            EventRow.organization_id == org_id,
            EventRow.status == EventStatus.SCHEDULED.value,
            EventRow.start_date >= today,
            ascending=True,
        )

    async def list_in_range(self, org_id: int, start: date, end: date) -> list[Event]:
        return await self._events(
            EventRow.organization_id == org_id,
            EventRow.start_date.between(start, end),
            ascending=True,
        )

    async def add(self, event: Event) -> Event:
        row = EventRow(
            organization_id=event.organization_id,
            title=event.title,
            description=event.description,
            location=event.location,
            event_type=event.event_type,
            status=event.status.value,
            start_date=event.start_date,
            end_date=event.end_date,
            start_time=event.start_time,
            created_by=event.created_by,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_event(row)

    async def update(self, event_id: int, **changes: Any) -> Event | None:
        if "status" in changes:
            changes["status"] = EventStatus(changes["status"]).value
        row = await update_row(self._session, EventRow, event_id, changes)
        return _row_to_event(row) if row is not None else None

    async def delete(self, event_id: int) -> bool:
        return await delete_row(self._session, EventRow, event_id)

    # --- schedules ---

    async def list_schedules(self, event_id: int) -> list[EventSchedule]:
        stmt = (
            select(EventScheduleRow)
            .where(EventScheduleRow.event_id == event_id)
            .order_by(EventScheduleRow.date.asc(), EventScheduleRow.id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_schedule(r) for r in rows]

    async def get_schedule(self, schedule_id: int) -> EventSchedule | None:
        row = await self._session.get(EventScheduleRow, schedule_id)
        return _row_to_schedule(row) if row is not None else None

    async def add_schedule(self, schedule: EventSchedule) -> EventSchedule:
        row = EventScheduleRow(
            event_id=schedule.event_id,
            date=schedule.date,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            description=schedule.description,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_schedule(row)

    async def update_schedule(
        self, schedule_id: int, **changes: Any
    ) -> EventSchedule | None:
        row = await update_row(self._session, EventScheduleRow, schedule_id, changes)
        return _row_to_schedule(row) if row is not None else None

    async def delete_schedule(self, schedule_id: int) -> bool:
        return await delete_row(self._session, EventScheduleRow, schedule_id)

    # --- blocks ---

    async def list_blocks(self, event_id: int) -> list[EventBlock]:
        stmt = (
            select(EventBlockRow)
            .where(EventBlockRow.event_id == event_id)
            .order_by(EventBlockRow.start_date.asc(), EventBlockRow.id.asc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_block(r) for r in rows]

    async def get_block(self, block_id: int) -> EventBlock | None:
        row = await self._session.get(EventBlockRow, block_id)
        return _row_to_block(row) if row is not None else None

    async def add_block(self, block: EventBlock) -> EventBlock:
        row = EventBlockRow(
            event_id=block.event_id,
            application_user_id=block.application_user_id,
            start_date=block.start_date,
            end_date=block.end_date,
            reason=block.reason,
        )
        self._session.add(row)
        await self._session.flush()
        await self._session.refresh(row)
        return _row_to_block(row)

    async def update_block(self, block_id: int, **changes: Any) -> EventBlock | None:
        row = await update_row(self._session, EventBlockRow, block_id, changes)
        return _row_to_block(row) if row is not None else None

    async def delete_block(self, block_id: int) -> bool:
        return await delete_row(self._session, EventBlockRow, block_id)


def _row_to_event(row: EventRow) -> Event:
    return Event(
        id=row.id,
        organization_id=row.organization_id,
        title=row.title,
        start_date=row.start_date,
        end_date=row.end_date,
        start_time=row.start_time,
        description=row.description,
        location=row.location,
        event_type=row.event_type,
        status=EventStatus(row.status),
        created_by=row.created_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_schedule(row: EventScheduleRow) -> EventSchedule:
    return EventSchedule(
        id=row.id,
        event_id=row.event_id,
        date=row.date,
        start_time=row.start_time,
        end_time=row.end_time,
        description=row.description,
        created_at=row.created_at,
    )


def _row_to_block(row: EventBlockRow) -> EventBlock:
    return EventBlock(
        id=row.id,
        event_id=row.event_id,
        application_user_id=row.application_user_id,
        start_date=row.start_date,
        end_date=row.end_date,
        reason=row.reason,
        created_at=row.created_at,
    )
