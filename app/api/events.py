from __future__ import annotations

import datetime as dt
from datetime import UTC, date, datetime, time
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from app.api.dependencies import (
    TenantScope,
    get_repositories,
    require_capability,
    require_tenant_user,
)
from app.api.schemas import PatchIn
from app.core.errors import (
    EntityValidationError,
    PermissionDeniedError,
    RecordNotFoundError,
)
from app.models.event import (
    Event,
    EventBlock,
    EventSchedule,
    EventStatus,
    parse_status,
)
from app.repos.registry import Repositories

router = APIRouter(prefix="/v1/events", tags=["events"])

Repos = Annotated[Repositories, Depends(get_repositories)]
Member = Annotated[TenantScope, Depends(require_tenant_user)]
Organizer = Annotated[TenantScope, Depends(require_capability("can_organize_events"))]


class EventIn(BaseModel):
    title: str
    start_date: date
    end_date: date | None = None
    start_time: time | None = None
    description: str | None = None
    location: str | None = None
    event_type: str | None = None
    status: EventStatus = EventStatus.SCHEDULED


class EventUpdateIn(PatchIn):
    not_null = frozenset({"title", "start_date", "status"})

    title: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    start_time: time | None = None
    description: str | None = None
    location: str | None = None
    event_type: str | None = None
    status: EventStatus | None = None


class EventOut(BaseModel):
    id: int
    organization_id: int
    title: str
    start_date: date
    end_date: date | None
    start_time: time | None
    description: str | None
    location: str | None
    event_type: str | None
    status: str
    created_by: int | None
    created_at: datetime | None = None


class ScheduleIn(BaseModel):
    date: dt.date
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None


class ScheduleOut(ScheduleIn):
    id: int
    event_id: int


class BlockIn(BaseModel):
    application_user_id: int
    start_date: date
    end_date: date | None = None
    reason: str | None = None


class BlockOut(BaseModel):
    id: int
    event_id: int
    application_user_id: int
    start_date: date
    end_date: date
    reason: str | None


def _event_out(e: Event) -> EventOut:
    return EventOut(
        id=e.id,
        organization_id=e.organization_id,
        title=e.title,
        start_date=e.start_date,
        end_date=e.end_date,
        start_time=e.start_time,
        description=e.description,
        location=e.location,
        event_type=e.event_type,
        status=str(e.status),
        created_by=e.created_by,
        created_at=e.created_at,
    )


def _schedule_out(s: EventSchedule) -> ScheduleOut:
    return ScheduleOut(
        id=s.id,
        event_id=s.event_id,
        date=s.date,
        start_time=s.start_time,
        end_time=s.end_time,
        description=s.description,
    )


def _block_out(b: EventBlock) -> BlockOut:
    return BlockOut(
        id=b.id,
        event_id=b.event_id,
        application_user_id=b.application_user_id,
        start_date=b.start_date,
        end_date=b.end_date,
        reason=b.reason,
    )


async def _event(repos: Repositories, scope: TenantScope, event_id: int) -> Event:
    event = await repos.events.get_by_id(event_id)
    if event is None:
        raise RecordNotFoundError("event not found")
    scope.ensure_owns(event.organization_id, "event")
    return event


# --- events ---


@router.get("", response_model=list[EventOut])
async def list_events(
    scope: Member,
    repos: Repos,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
    upcoming: bool = False,
    start: date | None = None,
    end: date | None = None,
) -> list[EventOut]:
    org_id = scope.organization_id
    if upcoming:
        events = await repos.events.list_upcoming(org_id, datetime.now(UTC).date())
    elif start is not None or end is not None:
        if start is None or end is None:
            raise EntityValidationError("start and end must be given together")
        if end < start:
            raise EntityValidationError("end must not be before start")
        events = await repos.events.list_in_range(org_id, start, end)
    elif status_filter is not None:
        events = await repos.events.list_by_status(org_id, parse_status(status_filter))
    else:
        events = await repos.events.list_by_organization(org_id)
    return [_event_out(e) for e in events]


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(payload: EventIn, scope: Organizer, repos: Repos) -> EventOut:
    draft = Event.new(
        organization_id=scope.organization_id,
        created_by=scope.user_id or None,
        **payload.model_dump(),
    )
    return _event_out(await repos.events.add(draft))


@router.get("/{event_id}", response_model=EventOut)
async def get_event(event_id: int, scope: Member, repos: Repos) -> EventOut:
    return _event_out(await _event(repos, scope, event_id))


@router.patch("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: int, payload: EventUpdateIn, scope: Organizer, repos: Repos
) -> EventOut:
    current = await _event(repos, scope, event_id)
    changes = payload.changes()
    if not changes:
        raise EntityValidationError("no fields to update")
    if "title" in changes:
        changes["title"] = (changes["title"] or "").strip()
        if not changes["title"]:
            raise EntityValidationError("event title is required")
    start = changes.get("start_date", current.start_date)
    end = changes.get("end_date", current.end_date)
    if start is None:
        raise EntityValidationError("start_date is required")
    if end is not None and end < start:
        raise EntityValidationError("end_date must not be before start_date")
    updated = await repos.events.update(event_id, **changes)
    if updated is None:
        raise RecordNotFoundError("event not found")
    return _event_out(updated)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(event_id: int, scope: Organizer, repos: Repos) -> None:
    await _event(repos, scope, event_id)
    await repos.events.delete(event_id)


# --- schedules ---


@router.get("/{event_id}/schedules", response_model=list[ScheduleOut])
async def list_schedules(
    event_id: int, scope: Member, repos: Repos
) -> list[ScheduleOut]:
    await _event(repos, scope, event_id)
    return [_schedule_out(s) for s in await repos.events.list_schedules(event_id)]


@router.post(
    "/{event_id}/schedules",
    response_model=ScheduleOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_schedule(
    event_id: int, payload: ScheduleIn, scope: Organizer, repos: Repos
) -> ScheduleOut:
    await _event(repos, scope, event_id)
    draft = EventSchedule.new(event_id=event_id, **payload.model_dump())
    return _schedule_out(await repos.events.add_schedule(draft))


async def _schedule(
    repos: Repositories, scope: TenantScope, event_id: int, schedule_id: int
) -> EventSchedule:
    await _event(repos, scope, event_id)
    schedule = await repos.events.get_schedule(schedule_id)
    if schedule is None or schedule.event_id != event_id:
        raise RecordNotFoundError("schedule not found")
    return schedule


@router.put("/{event_id}/schedules/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    event_id: int,
    schedule_id: int,
    payload: ScheduleIn,
    scope: Organizer,
    repos: Repos,
) -> ScheduleOut:
    await _schedule(repos, scope, event_id, schedule_id)
    # Re-run the start/end check on the full replacement.
    checked = EventSchedule.new(event_id=event_id, **payload.model_dump())
    updated = await repos.events.update_schedule(
        schedule_id,
        date=checked.date,
        start_time=checked.start_time,
        end_time=checked.end_time,
        description=checked.description,
    )
    if updated is None:
        raise RecordNotFoundError("schedule not found")
    return _schedule_out(updated)


@router.delete(
    "/{event_id}/schedules/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_schedule(
    event_id: int, schedule_id: int, scope: Organizer, repos: Repos
) -> None:
    await _schedule(repos, scope, event_id, schedule_id)
    await repos.events.delete_schedule(schedule_id)


# --- blocks ---


@router.get("/{event_id}/blocks", response_model=list[BlockOut])
async def list_blocks(event_id: int, scope: Member, repos: Repos) -> list[BlockOut]:
    await _event(repos, scope, event_id)
    return [_block_out(b) for b in await repos.events.list_blocks(event_id)]


@router.post(
    "/{event_id}/blocks", response_model=BlockOut, status_code=status.HTTP_201_CREATED
)
async def add_block(
    event_id: int, payload: BlockIn, scope: Member, repos: Repos
) -> BlockOut:
    await _event(repos, scope, event_id)
    member = await repos.users.get_by_id(payload.application_user_id)
    if member is None:
        raise RecordNotFoundError("user not found")
    scope.ensure_owns(member.organization_id, "user")
    # Members block out their own dates; organizers may do it for anyone.
    if (
        member.id != scope.user_id
        and not scope.session.capabilities.can_organize_events
    ):
        raise PermissionDeniedError("only organizers can block other members")
    draft = EventBlock.new(event_id=event_id, **payload.model_dump())
    return _block_out(await repos.events.add_block(draft))


async def _block(
    repos: Repositories, scope: TenantScope, event_id: int, block_id: int
) -> EventBlock:
    await _event(repos, scope, event_id)
    block = await repos.events.get_block(block_id)
    if block is None or block.event_id != event_id:
        raise RecordNotFoundError("block not found")
    return block


@router.put("/{event_id}/blocks/{block_id}", response_model=BlockOut)
async def update_block(
    event_id: int, block_id: int, payload: BlockIn, scope: Organizer, repos: Repos
) -> BlockOut:
    current = await _block(repos, scope, event_id, block_id)
    checked = EventBlock.new(
        event_id=event_id,
        application_user_id=current.application_user_id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
    )
    updated = await repos.events.update_block(
        block_id,
        start_date=checked.start_date,
        end_date=checked.end_date,
        reason=checked.reason,
    )
    if updated is None:
        raise RecordNotFoundError("block not found")
    return _block_out(updated)


@router.delete("/{event_id}/blocks/{block_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_block(
    event_id: int, block_id: int, scope: Organizer, repos: Repos
) -> None:
    await _block(repos, scope, event_id, block_id)
    await repos.events.delete_block(block_id)
