"""initial schema

Revision ID: 3b1e7c2a9d40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e7c2a9d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _org_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Integer(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    # organizations.owner_id and application_users.organization_id point at
    # each other; the owner FK is added once both tables exist.
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        sa.Column("subscription_plan", sa.String(length=16), nullable=False),
        sa.Column("max_users", sa.Integer(), nullable=False),
        sa.Column("max_storage_gb", sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "application_users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "organization_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("is_admin", sa.Boolean(), nullable=False),
        sa.Column("can_add_people", sa.Boolean(), nullable=False),
        sa.Column("can_organize_events", sa.Boolean(), nullable=False),
        sa.Column("can_manage_media", sa.Boolean(), nullable=False),
        sa.Column("receive_cancel_event_notification", sa.Boolean(), nullable=False),
        sa.Column("pending", sa.Boolean(), nullable=False),
        sa.Column("phone_number", sa.String(length=32), nullable=True),
        sa.Column("country_dial_code", sa.String(length=8), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("profile_url", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_foreign_key(
        "organizations_owner_id_fkey",
        "organizations",
        "application_users",
        ["owner_id"],
        ["id"],
        ondelete="SET NULL",
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column(
            "created_by",
            sa.Integer(),
            sa.ForeignKey("application_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_table(
        "event_schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "event_blocks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "application_user_id",
            sa.Integer(),
            sa.ForeignKey("application_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        _created_at(),
    )

    op.create_table(
        "music",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("artist", sa.String(length=255), nullable=True),
        sa.Column("key", sa.String(length=8), nullable=True),
        sa.Column("bpm", sa.Integer(), nullable=True),
        sa.Column("lyrics", sa.Text(), nullable=True),
        sa.Column("chords", sa.Text(), nullable=True),
        sa.Column("reference_url", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "files",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column("name", sa.String(length=500), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("size", sa.BigInteger(), nullable=False),
        sa.Column("url", sa.Text(), nullable=False),
        sa.Column(
            "uploaded_by",
            sa.Integer(),
            sa.ForeignKey("application_users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )

    op.create_table(
        "organization_teams",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        _org_fk(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "team_positions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "organization_team_id",
            sa.Integer(),
            sa.ForeignKey("organization_teams.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        "organization_team_positions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "application_user_id",
            sa.Integer(),
            sa.ForeignKey("application_users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "team_position_id",
            sa.Integer(),
            sa.ForeignKey("team_positions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _created_at(),
        sa.UniqueConstraint("application_user_id", "team_position_id"),
    )

    op.create_index("ix_application_users_organization_id", "application_users", ["organization_id"])
    op.create_index("ix_events_organization_id_start_date", "events", ["organization_id", "start_date"])
    op.create_index("ix_music_organization_id", "music", ["organization_id"])
    op.create_index("ix_files_organization_id", "files", ["organization_id"])


def downgrade() -> None:
    op.drop_table("organization_team_positions")
    op.drop_table("team_positions")
    op.drop_table("organization_teams")
    op.drop_table("files")
    op.drop_table("music")
    op.drop_table("event_blocks")
    op.drop_table("event_schedules")
    op.drop_table("events")
    op.drop_constraint("organizations_owner_id_fkey", "organizations", type_="foreignkey")
    op.drop_table("application_users")
    op.drop_table("organizations")
