from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from app.core.errors import EntityValidationError


class SubscriptionPlan(StrEnum):
    FREE = "Free"
    BASIC = "Basic"
    PREMIUM = "Premium"


# Seat allowance applied when a plan is chosen without an explicit max_users.
PLAN_MAX_USERS: dict[SubscriptionPlan, int] = {
    SubscriptionPlan.FREE: 50,
    SubscriptionPlan.BASIC: 150,
    SubscriptionPlan.PREMIUM: 500,
}

DEFAULT_MAX_STORAGE_GB = 0.5


@dataclass(frozen=True, slots=True)
class Organization:
    id: int
    name: str
    # None until the owning ApplicationUser has been created and linked.
    owner_id: int | None = None
    subscription_plan: SubscriptionPlan = SubscriptionPlan.FREE
    max_users: int = PLAN_MAX_USERS[SubscriptionPlan.FREE]
    max_storage_gb: float = DEFAULT_MAX_STORAGE_GB
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def max_storage_bytes(self) -> int:
        return int(self.max_storage_gb * 1024**3)

    @staticmethod
    def new(
        *,
        name: str,
        subscription_plan: SubscriptionPlan | str = SubscriptionPlan.FREE,
        max_users: int | None = None,
        max_storage_gb: float | None = None,
    ) -> Organization:
        """Build an unsaved organization (id 0; the repo assigns the real id)."""
        name = (name or "").strip()
        if not name:
            raise EntityValidationError("organization name is required")
        plan = parse_plan(subscription_plan)
        if max_users is None:
            max_users = PLAN_MAX_USERS[plan]
        if max_storage_gb is None:
            max_storage_gb = DEFAULT_MAX_STORAGE_GB
        validate_limits(max_users=max_users, max_storage_gb=max_storage_gb)
        return Organization(
            id=0,
            name=name,
            subscription_plan=plan,
            max_users=max_users,
            max_storage_gb=max_storage_gb,
        )


def parse_plan(value: SubscriptionPlan | str) -> SubscriptionPlan:
    try:
        return SubscriptionPlan(value)
    except ValueError:
        raise EntityValidationError(
            f"subscription_plan must be Free|Basic|Premium (got {value!r})"
        ) from None


def validate_limits(
    *, max_users: int | None = None, max_storage_gb: float | None = None
) -> None:
    if max_users is not None and max_users <= 0:
        raise EntityValidationError("max_users must be positive")
    if max_storage_gb is not None and max_storage_gb <= 0:
        raise EntityValidationError("max_storage_gb must be positive")


@dataclass(frozen=True, slots=True)
class OrganizationStats:
    total: int
    # Organizations whose owner has been linked.
    active: int
    free: int
    basic: int
    premium: int
    recent: int
