"""Repository bundle handed to services and routes.

A ``Repositories`` value groups one repository per entity so a service
can work across several of them (organization + owner user) inside a
single ``transaction()``:

  PostgreSQL  the repos share one AsyncSession; ``transaction()`` opens a
              SAVEPOINT, so a failure rolls back only the block while the
              request-level transaction stays usable.
  in-memory   ``transaction()`` snapshots every table and restores the
              snapshot if the block raises.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from app.repos.event_repo import EventRepo, InMemoryEventRepo
from app.repos.file_repo import FileRepo, InMemoryFileRepo
from app.repos.memory_table import TableBackedRepo
from app.repos.music_repo import InMemoryMusicRepo, MusicRepo
from app.repos.org_repo import InMemoryOrganizationRepo, OrganizationRepo
from app.repos.pg_event_repo import PgEventRepo
from app.repos.pg_file_repo import PgFileRepo
from app.repos.pg_music_repo import PgMusicRepo
from app.repos.pg_org_repo import PgOrganizationRepo
from app.repos.pg_team_repo import PgTeamRepo
from app.repos.pg_user_repo import PgUserRepo
from app.repos.team_repo import InMemoryTeamRepo, TeamRepo
from app.repos.user_repo import InMemoryUserRepo, UserRepo

logger = logging.getLogger(__name__)


@dataclass
class Repositories:
    organizations: OrganizationRepo
    users: UserRepo
    events: EventRepo
    music: MusicRepo
    files: FileRepo
    teams: TeamRepo
    session: AsyncSession | None = field(default=None, repr=False)

    def _memory_repos(self) -> list[TableBackedRepo]:
        return [
            repo
            for repo in (
                self.organizations,
                self.users,
                self.events,
                self.music,
                self.files,
                self.teams,
            )
            if isinstance(repo, TableBackedRepo)
        ]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """All-or-nothing block across every repository in the bundle."""
        if self.session is not None:
            async with self.session.begin_nested():
                yield
            return

        repos = self._memory_repos()
        snapshots = [repo.snapshot() for repo in repos]
        try:
            yield
        except BaseException:
            for repo, snap in zip(repos, snapshots, strict=True):
                repo.restore(snap)
            logger.debug("In-memory transaction rolled back")
            raise

    def clear(self) -> None:
        """Empty every in-memory table (tests and local dev only)."""
        for repo in self._memory_repos():
            repo.clear()


def memory_repositories() -> Repositories:
    events = InMemoryEventRepo()
    teams = InMemoryTeamRepo()
    return Repositories(
        organizations=InMemoryOrganizationRepo(),
        users=InMemoryUserRepo(dependents=(teams, events)),
        events=events,
        music=InMemoryMusicRepo(),
        files=InMemoryFileRepo(),
        teams=teams,
    )


def pg_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        organizations=PgOrganizationRepo(session),
        users=PgUserRepo(session),
        events=PgEventRepo(session),
        music=PgMusicRepo(session),
        files=PgFileRepo(session),
        teams=PgTeamRepo(session),
        session=session,
    )


# Process-wide bundle used when DATABASE_URL is not configured.
memory_store = memory_repositories()
