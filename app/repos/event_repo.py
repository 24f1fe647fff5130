from __future__ import annotations

from datetime import date
from typing import Any, Protocol

from app.models.event import Event, EventBlock, EventSchedule, EventStatus
from app.repos.memory_table import InMemoryTable, TableBackedRepo


class EventRepo(Protocol):
    async def list_all(self) -> list[Event]: ...
    async def list_by_organization(self, org_id: int) -> list[Event]: ...
    async def get_by_id(self, event_id: int) -> Event | None: ...
    async def list_by_status(self, org_id: int, status: EventStatus) -> list[Event]: ...
    async def list_upcoming(self, org_id: int, today: date) -> list[Event]: ...
    async def list_in_range(self, org_id: int, start: date, end: date) -> list[Event]: ...
    async def add(self, event: Event) -> Event: ...
    async def update(self, event_id: int, **changes: Any) -> Event | None: ...
    async def delete(self, event_id: int) -> bool: ...

    async def list_schedules(self, event_id: int) -> list[EventSchedule]: ...
    async def get_schedule(self, schedule_id: int) -> EventSchedule | None: ...
    async def add_schedule(self, schedule: EventSchedule) -> EventSchedule: ...
    async def update_schedule(
        self, schedule_id: int, **changes: Any
    ) -> EventSchedule | None: ...
    async def delete_schedule(self, schedule_id: int) -> bool: ...

    async def list_blocks(self, event_id: int) -> list[EventBlock]: ...
    async def get_block(self, block_id: int) -> EventBlock | None: ...
    async def add_block(self, block: EventBlock) -> EventBlock: ...
    async def update_block(self, block_id: int, **changes: Any) -> EventBlock | None: ...
    async def delete_block(self, block_id: int) -> bool: ...


def _latest_first(events: list[Event]) -> list[Event]:
    return sorted(events, key=lambda e: (e.start_date, e.id), reverse=True)


class InMemoryEventRepo(TableBackedRepo):
    def __init__(self) -> None:
        self._events: InMemoryTable[Event] = InMemoryTable()
        self._schedules: InMemoryTable[EventSchedule] = InMemoryTable()
        self._blocks: InMemoryTable[EventBlock] = InMemoryTable()

    # --- events ---

    async def list_all(self) -> list[Event]:
        return _latest_first(self._events.values())

    async def list_by_organization(self, org_id: int) -> list[Event]:
        return [e for e in await self.list_all() if e.organization_id == org_id]

    async def get_by_id(self, event_id: int) -> Event | None:
        return self._events.get(event_id)

    async def list_by_status(self, org_id: int, status: EventStatus) -> list[Event]:
        return [e for e in await self.list_by_organization(org_id) if e.status == status]

    async def list_upcoming(self, org_id: int, today: date) -> list[Event]:
        upcoming = [
            e
            for e in self._events.values()
            if e.organization_id == org_id
            and e.status == EventStatus.SCHEDULED
            and e.start_date >= today
        ]
        return sorted(upcoming, key=lambda e: (e.start_date, e.id))

    async def list_in_range(self, org_id: int, start: date, end: date) -> list[Event]:
        in_range = [
            e
            for e in self._events.values()
            if e.organization_id == org_id and start <= e.start_date <= end
        ]
        return sorted(in_range, key=lambda e: (e.start_date, e.id))

    async def add(self, event: Event) -> Event:
        return self._events.insert(event)

    async def update(self, event_id: int, **changes: Any) -> Event | None:
        return self._events.update(event_id, changes)

    async def delete(self, event_id: int) -> bool:
        if not self._events.delete(event_id):
            return False
        # Mirror ON DELETE CASCADE for the child tables.
        for s in self._schedules.values():
            if s.event_id == event_id:
                self._schedules.delete(s.id)
        for b in self._blocks.values():
            if b.event_id == event_id:
                self._blocks.delete(b.id)
        return True

    # --- schedules ---

    async def list_schedules(self, event_id: int) -> list[EventSchedule]:
        rows = [s for s in self._schedules.values() if s.event_id == event_id]
        return sorted(rows, key=lambda s: (s.date, s.id))

    async def get_schedule(self, schedule_id: int) -> EventSchedule | None:
        return self._schedules.get(schedule_id)

    async def add_schedule(self, schedule: EventSchedule) -> EventSchedule:
        return self._schedules.insert(schedule)

    async def update_schedule(
        self, schedule_id: int, **changes: Any
    ) -> EventSchedule | None:
        return self._schedules.update(schedule_id, changes)

    async def delete_schedule(self, schedule_id: int) -> bool:
        return self._schedules.delete(schedule_id)

    # --- blocks ---

    async def list_blocks(self, event_id: int) -> list[EventBlock]:
        rows = [b for b in self._blocks.values() if b.event_id == event_id]
        return sorted(rows, key=lambda b: (b.start_date, b.id))

    async def get_block(self, block_id: int) -> EventBlock | None:
        return self._blocks.get(block_id)

    async def add_block(self, block: EventBlock) -> EventBlock:
        return self._blocks.insert(block)

    async def update_block(self, block_id: int, **changes: Any) -> EventBlock | None:
        return self._blocks.update(block_id, changes)

    async def delete_block(self, block_id: int) -> bool:
        return self._blocks.delete(block_id)

    def forget_user(self, user_id: int) -> None:
        for b in self._blocks.values():
            if b.application_user_id == user_id:
                self._blocks.delete(b.id)
