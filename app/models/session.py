"""Session and identity value types.

An *Identity* is what the external identity provider vouches for (an email
plus profile metadata).  A *Session* is what the application derives from
it: the ApplicationUser, the tenant Organization, and whether the identity
is a super-admin.  ``PersistedSession`` is the durable form kept in the
session store between requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from app.models.organization import Organization
from app.models.user import ApplicationUser, Capabilities


@dataclass(frozen=True, slots=True)
class Identity:
    email: str
    display_name: str | None = None
    avatar_url: str | None = None


@dataclass(frozen=True, slots=True)
class AuthSession:
    """A provider-issued session: bearer token plus the identity behind it."""

    access_token: str
    identity: Identity
    expires_at: float  # unix seconds


@dataclass(frozen=True, slots=True)
class OAuthRedirect:
    url: str
    state: str
    code_verifier: str


@dataclass(frozen=True, slots=True)
class OAuthFlow:
    """Pending OAuth handshake kept server-side until the callback arrives."""

    provider: str
    state: str
    code_verifier: str


class AuthEventType(StrEnum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"


@dataclass(frozen=True, slots=True)
class AuthEvent:
    type: AuthEventType
    access_token: str
    email: str | None = None
    # Set on TOKEN_REFRESHED: the token the new one replaces.
    previous_token: str | None = None


class SessionStatus(StrEnum):
    LOADING = "loading"
    ANONYMOUS = "anonymous"
    TENANT_USER = "tenant_user"
    SUPER_ADMIN = "super_admin"


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    user: ApplicationUser
    organization: Organization | None
    is_super_admin: bool


@dataclass(frozen=True, slots=True)
class Session:
    user: ApplicationUser | None = None
    organization: Organization | None = None
    is_super_admin: bool = False
    loading: bool = False

    @staticmethod
    def anonymous() -> Session:
        return Session()

    @staticmethod
    def unresolved() -> Session:
        return Session(loading=True)

    @staticmethod
    def from_resolved(resolved: ResolvedIdentity) -> Session:
        return Session(
            user=resolved.user,
            organization=resolved.organization,
            is_super_admin=resolved.is_super_admin,
        )

    @property
    def status(self) -> SessionStatus:
        if self.loading:
            return SessionStatus.LOADING
        if self.user is None:
            return SessionStatus.ANONYMOUS
        if self.is_super_admin:
            return SessionStatus.SUPER_ADMIN
        return SessionStatus.TENANT_USER

    @property
    def capabilities(self) -> Capabilities:
        if self.is_super_admin:
            return Capabilities.all()
        if self.user is None:
            return Capabilities.none()
        return self.user.capabilities

    def triple(self) -> tuple[ApplicationUser | None, Organization | None, bool]:
        return (self.user, self.organization, self.is_super_admin)


@dataclass(frozen=True, slots=True)
class PersistedSession:
    user: ApplicationUser
    organization: Organization | None
    is_super_admin: bool
    access_token: str = field(repr=False)

    def to_session(self) -> Session:
        return Session(
            user=self.user,
            organization=self.organization,
            is_super_admin=self.is_super_admin,
        )
