"""Demo: password login, OAuth (PKCE) login and logout against the in-memory stack.

Run with (no DATABASE_URL / REDIS_URL, IDENTITY_PROVIDER=memory):
    SUPER_ADMIN_EMAILS=root@example.com python scripts/demo_login_flow.py
"""

from __future__ import annotations

import asyncio
from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from app.main import app
from app.repos.registry import memory_store
from app.services import org_service
from app.services.identity_provider import InMemoryIdentityProvider, identity_provider

OWNER_EMAIL = "pastor@example.com"
OWNER_PASSWORD = "demo-pass"


def main() -> None:
    assert isinstance(identity_provider, InMemoryIdentityProvider), (
        "the demo needs IDENTITY_PROVIDER=memory"
    )

    # ── Seed: one tenant with its owner, plus the owner's provider account ──
    org, owner = asyncio.run(
        org_service.create_organization_with_owner(
            memory_store,
            name="Grace Chapel",
            owner_email=OWNER_EMAIL,
            owner_name="Pat Pastor",
        )
    )
    identity_provider.register_account(OWNER_EMAIL, OWNER_PASSWORD)
    print(f"0. seeded organization id={org.id} owner id={owner.id}")

    client = TestClient(app, follow_redirects=False)

    # ── Step 1: anonymous session ───────────────────────────────────
    r = client.get("/auth/session")
    print(f"1. GET  /auth/session          → {r.status_code}  {r.json()['status']}")

    # ── Step 2: bad password ────────────────────────────────────────
    r = client.post("/auth/login", json={"email": OWNER_EMAIL, "password": "wrong"})
    print(f"2. POST /auth/login (bad)      → {r.status_code}  {r.json()['error']}")

    # ── Step 3: good password ───────────────────────────────────────
    r = client.post(
        "/auth/login", json={"email": OWNER_EMAIL, "password": OWNER_PASSWORD}
    )
    body = r.json()
    print(
        f"3. POST /auth/login (good)     → {r.status_code}  "
        f"{body['status']} org={body['organization']['name']}"
    )

    # ── Step 4: tenant data with the restored session ───────────────
    r = client.get("/v1/users")
    print(f"4. GET  /v1/users              → {r.status_code}  {len(r.json())} member(s)")

    # ── Step 5: logout, then the session is anonymous again ─────────
    r = client.post("/auth/logout")
    print(f"5. POST /auth/logout           → {r.status_code}")
    r = client.get("/v1/users")
    print(f"   GET  /v1/users              → {r.status_code}  {r.json()['error']}")

    # ── Step 6: OAuth start (302 to the provider) ───────────────────
    r = client.get("/auth/oauth/google")
    location = r.headers["location"]
    state = parse_qs(urlparse(location).query)["state"][0]
    print(f"6. GET  /auth/oauth/google     → {r.status_code}  {location[:48]}…")

    # ── Step 7: the user approves at the provider ───────────────────
    code = identity_provider.issue_authorization_code(state, OWNER_EMAIL)

    # ── Step 8: callback with a forged state is rejected ────────────
    r = client.get("/auth/callback", params={"code": code, "state": "forged"})
    print(f"8. GET  /auth/callback (forged)→ {r.status_code}  {r.json()['error']}")

    # ── Step 9: a fresh flow completes ──────────────────────────────
    r = client.get("/auth/oauth/google")
    state = parse_qs(urlparse(r.headers["location"]).query)["state"][0]
    code = identity_provider.issue_authorization_code(state, OWNER_EMAIL)
    r = client.get("/auth/callback", params={"code": code, "state": state})
    print(f"9. GET  /auth/callback         → {r.status_code}  {r.json()['status']}")

    print("\nAll steps completed.")


if __name__ == "__main__":
    main()
