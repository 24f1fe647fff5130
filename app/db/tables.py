"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in app/models/.
Repos convert between SQLAlchemy rows and domain dataclasses.

Every tenant-owned table carries ``organization_id`` (directly, or through
its parent event/team) so tenant scoping is a single equality filter.
"""

from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.engine import Base


class _Timestamps:
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


# --- Tenancy ---


class OrganizationRow(_Timestamps, Base):
    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Nullable: set in the same transaction right after the owner row exists.
    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("application_users.id", use_alter=True, ondelete="SET NULL"),
        nullable=True,
    )
    subscription_plan: Mapped[str] = mapped_column(
        String(16), nullable=False, default="Free"
    )  # Free|Basic|Premium
    max_users: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    max_storage_gb: Mapped[float] = mapped_column(Float, nullable=False, default=0.5)


class ApplicationUserRow(_Timestamps, Base):
    __tablename__ = "application_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_add_people: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    can_organize_events: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    can_manage_media: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    receive_cancel_event_notification: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    pending: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    country_dial_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    birth_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    profile_url: Mapped[str | None] = mapped_column(Text, nullable=True)


# --- Events ---


class EventRow(_Timestamps, Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    event_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="Scheduled"
    )  # Scheduled|Cancelled|Completed|Draft
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    start_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("application_users.id", ondelete="SET NULL"), nullable=True
    )


class EventScheduleRow(Base):
    __tablename__ = "event_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    start_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[dt.time | None] = mapped_column(Time, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class EventBlockRow(Base):
    __tablename__ = "event_blocks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    application_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("application_users.id", ondelete="CASCADE"), nullable=False
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


# --- Media ---


class MusicRow(_Timestamps, Base):
    __tablename__ = "music"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    artist: Mapped[str | None] = mapped_column(String(255), nullable=True)
    key: Mapped[str | None] = mapped_column(String(8), nullable=True)
    bpm: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lyrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    chords: Mapped[str | None] = mapped_column(Text, nullable=True)
    reference_url: Mapped[str | None] = mapped_column(Text, nullable=True)


class FileRow(_Timestamps, Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_by: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("application_users.id", ondelete="SET NULL"), nullable=True
    )


# --- Teams ---


class OrganizationTeamRow(_Timestamps, Base):
    __tablename__ = "organization_teams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class TeamPositionRow(Base):
    __tablename__ = "team_positions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_team_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("organization_teams.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class OrganizationTeamPositionRow(Base):
    __tablename__ = "organization_team_positions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    application_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("application_users.id", ondelete="CASCADE"), nullable=False
    )
    team_position_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("team_positions.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (UniqueConstraint("application_user_id", "team_position_id"),)
