from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

from app.core.errors import EntityValidationError

# Deliberately loose: one "@", no whitespace, a dot in the domain part.
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SUPER_ADMIN_USER_ID = 0


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_email(email: str | None) -> str:
    normalized = normalize_email(email)
    if not normalized:
        raise EntityValidationError("email is required")
    if not _EMAIL_RE.match(normalized):
        raise EntityValidationError(f"invalid email address: {normalized!r}")
    return normalized


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Effective permissions of a session, after pending/super-admin rules."""

    is_admin: bool = False
    can_add_people: bool = False
    can_organize_events: bool = False
    can_manage_media: bool = False

    NAMES = ("is_admin", "can_add_people", "can_organize_events", "can_manage_media")

    @staticmethod
    def all() -> Capabilities:
        return Capabilities(True, True, True, True)

    @staticmethod
    def none() -> Capabilities:
        return Capabilities()

    def allows(self, name: str) -> bool:
        if name not in self.NAMES:
            raise ValueError(f"unknown capability {name!r}")
        return bool(getattr(self, name))


@dataclass(frozen=True, slots=True)
class ApplicationUser:
    id: int
    email: str
    name: str
    organization_id: int | None
    is_admin: bool = False
    can_add_people: bool = False
    can_organize_events: bool = False
    can_manage_media: bool = False
    receive_cancel_event_notification: bool = False
    pending: bool = True
    phone_number: str | None = None
    country_dial_code: str | None = None
    birth_date: date | None = None
    profile_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def capabilities(self) -> Capabilities:
        # Pending users get nothing until an admin approves them.
        if self.pending:
            return Capabilities.none()
        return Capabilities(
            is_admin=self.is_admin,
            can_add_people=self.can_add_people,
            can_organize_events=self.can_organize_events,
            can_manage_media=self.can_manage_media,
        )

    @staticmethod
    def new(
        *,
        email: str,
        name: str,
        organization_id: int | None,
        is_admin: bool = False,
        can_add_people: bool = False,
        can_organize_events: bool = False,
        can_manage_media: bool = False,
        receive_cancel_event_notification: bool = False,
        pending: bool = True,
        phone_number: str | None = None,
        country_dial_code: str | None = None,
        birth_date: date | None = None,
        profile_url: str | None = None,
    ) -> ApplicationUser:
        normalized = validate_email(email)
        name = (name or "").strip()
        if not name:
            raise EntityValidationError("name is required")
        return ApplicationUser(
            id=0,
            email=normalized,
            name=name,
            organization_id=organization_id,
            is_admin=is_admin,
            can_add_people=can_add_people,
            can_organize_events=can_organize_events,
            can_manage_media=can_manage_media,
            receive_cancel_event_notification=receive_cancel_event_notification,
            pending=pending,
            phone_number=phone_number,
            country_dial_code=country_dial_code,
            birth_date=birth_date,
            profile_url=profile_url,
        )

    @staticmethod
    def super_admin(
        *, email: str, name: str | None = None, profile_url: str | None = None
    ) -> ApplicationUser:
        """Synthetic profile for an allow-listed identity; never persisted."""
        normalized = normalize_email(email)
        return ApplicationUser(
            id=SUPER_ADMIN_USER_ID,
            email=normalized,
            name=name or normalized,
            organization_id=None,
            is_admin=True,
            can_add_people=True,
            can_organize_events=True,
            can_manage_media=True,
            receive_cancel_event_notification=False,
            pending=False,
            profile_url=profile_url,
        )


@dataclass(frozen=True, slots=True)
class UserStats:
    total: int
    pending: int
    admins: int
    recent: int
