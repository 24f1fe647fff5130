from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any, TypeVar

import pytest
from fastapi.testclient import TestClient

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.api.dependencies import get_super_admin_emails  # noqa: E402
from app.main import app  # noqa: E402
from app.models.organization import Organization  # noqa: E402
from app.models.user import ApplicationUser  # noqa: E402
from app.repos.registry import memory_store  # noqa: E402
from app.services import org_service  # noqa: E402
from app.services.identity_provider import (  # noqa: E402
    InMemoryIdentityProvider,
    identity_provider,
)
from app.services.session_store import InMemorySessionStore, session_store  # noqa: E402

T = TypeVar("T")

SUPER_ADMIN_EMAIL = "root@example.com"
OWNER_EMAIL = "pastor@example.com"
PASSWORD = "s3cret-pass"


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Drive one coroutine to completion from a sync test."""
    return asyncio.run(coro)


@pytest.fixture(autouse=True)
def reset_state() -> None:
    """Fresh tenant data, sessions and provider accounts for every test."""
    assert isinstance(identity_provider, InMemoryIdentityProvider)
    assert isinstance(session_store, InMemorySessionStore)
    memory_store.clear()
    session_store.reset()
    identity_provider.clear()
    app.dependency_overrides.clear()
    app.dependency_overrides[get_super_admin_emails] = lambda: (SUPER_ADMIN_EMAIL,)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def provider() -> InMemoryIdentityProvider:
    assert isinstance(identity_provider, InMemoryIdentityProvider)
    return identity_provider


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------


def seed_org(
    name: str = "Grace Chapel",
    owner_email: str = OWNER_EMAIL,
    password: str = PASSWORD,
    **kwargs: Any,
) -> tuple[Organization, ApplicationUser]:
    """Create a tenant with its owner and give the owner a provider account."""
    org, owner = run(
        org_service.create_organization_with_owner(
            memory_store,
            name=name,
            owner_email=owner_email,
            owner_name=f"{name} Owner",
            **kwargs,
        )
    )
    identity_provider.register_account(owner_email, password)  # type: ignore[union-attr]
    return org, owner


def add_member(
    org_id: int,
    email: str,
    *,
    password: str = PASSWORD,
    pending: bool = False,
    **capabilities: bool,
) -> ApplicationUser:
    user = run(
        memory_store.users.add(
            ApplicationUser.new(
                email=email,
                name=email.split("@")[0].title(),
                organization_id=org_id,
                pending=pending,
                **capabilities,
            )
        )
    )
    identity_provider.register_account(email, password)  # type: ignore[union-attr]
    return user


def register_super_admin(password: str = PASSWORD) -> None:
    identity_provider.register_account(SUPER_ADMIN_EMAIL, password)  # type: ignore[union-attr]


def login(client: TestClient, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def signed_in(email: str, password: str = PASSWORD) -> TestClient:
    """A fresh browser (own sid cookie) that is already logged in."""
    c = TestClient(app)
    login(c, email, password)
    return c
