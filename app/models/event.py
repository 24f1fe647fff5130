from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import StrEnum

from app.core.errors import EntityValidationError


class EventStatus(StrEnum):
    SCHEDULED = "Scheduled"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    DRAFT = "Draft"


def parse_status(value: EventStatus | str) -> EventStatus:
    try:
        return EventStatus(value)
    except ValueError:
        raise EntityValidationError(
            f"status must be Scheduled|Cancelled|Completed|Draft (got {value!r})"
        ) from None


def _check_range(start: date | None, end: date | None) -> None:
    if start is not None and end is not None and end < start:
        raise EntityValidationError("end_date must not be before start_date")


@dataclass(frozen=True, slots=True)
class Event:
    id: int
    organization_id: int
    title: str
    start_date: date
    end_date: date | None = None
    start_time: time | None = None
    description: str | None = None
    location: str | None = None
    event_type: str | None = None
    status: EventStatus = EventStatus.SCHEDULED
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @staticmethod
    def new(
        *,
        organization_id: int,
        title: str,
        start_date: date,
        end_date: date | None = None,
        start_time: time | None = None,
        description: str | None = None,
        location: str | None = None,
        event_type: str | None = None,
        status: EventStatus | str = EventStatus.SCHEDULED,
        created_by: int | None = None,
    ) -> Event:
        title = (title or "").strip()
        if not title:
            raise EntityValidationError("event title is required")
        _check_range(start_date, end_date)
        return Event(
            id=0,
            organization_id=organization_id,
            title=title,
            start_date=start_date,
            end_date=end_date,
            start_time=start_time,
            description=description,
            location=location,
            event_type=event_type,
            status=parse_status(status),
            created_by=created_by,
        )


@dataclass(frozen=True, slots=True)
class EventSchedule:
    """One dated slot of an event's programme."""

    id: int
    event_id: int
    date: date
    start_time: time | None = None
    end_time: time | None = None
    description: str | None = None
    created_at: datetime | None = None

    @staticmethod
    def new(
        *,
        event_id: int,
        date: date,
        start_time: time | None = None,
        end_time: time | None = None,
        description: str | None = None,
    ) -> EventSchedule:
        if start_time is not None and end_time is not None and end_time < start_time:
            raise EntityValidationError("end_time must not be before start_time")
        return EventSchedule(
            id=0,
            event_id=event_id,
            date=date,
            start_time=start_time,
            end_time=end_time,
            description=description,
        )


@dataclass(frozen=True, slots=True)
class EventBlock:
    """A period in which a member is unavailable for an event."""

    id: int
    event_id: int
    application_user_id: int
    start_date: date
    end_date: date
    reason: str | None = None
    created_at: datetime | None = None

    @staticmethod
    def new(
        *,
        event_id: int,
        application_user_id: int,
        start_date: date,
        end_date: date | None = None,
        reason: str | None = None,
    ) -> EventBlock:
        end_date = end_date or start_date
        _check_range(start_date, end_date)
        return EventBlock(
            id=0,
            event_id=event_id,
            application_user_id=application_user_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
