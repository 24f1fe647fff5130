"""Error taxonomy shared by services, repositories, and the HTTP layer.

Every error carries a ``kind`` (stable machine-readable name) and a
``user_message`` (safe to show to an end user).  The HTTP layer maps
classes to status codes in one place (app/main.py), so services never
import FastAPI.

CATEGORIES
----------
  AuthenticationError      bad credentials, expired token, OAuth state mismatch
  IdentityResolutionError  the identity is genuine but has no usable tenant
                           profile.  Never retried.  Each subclass has its
                           own message so the UI can say "you don't have
                           access" instead of "try again".
  ServiceUnavailableError  a dependency (auth provider, database, redis)
                           could not be reached.  TransientStoreError is the
                           store-specific subclass and is retried once.
  EntityValidationError    malformed input to a repository or service call.
"""

from __future__ import annotations


class AppError(Exception):
    kind = "app_error"
    user_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class AuthenticationError(AppError):
    kind = "authentication_failed"
    user_message = "Invalid credentials or expired session."


class PermissionDeniedError(AppError):
    kind = "permission_denied"
    user_message = "You do not have permission to perform this action."


# ---------------------------------------------------------------------------
# Identity resolution
# ---------------------------------------------------------------------------


class IdentityResolutionError(AppError):
    kind = "identity_resolution_failed"
    user_message = "Your account could not be resolved."


class UserNotFoundError(IdentityResolutionError):
    kind = "user_not_found"
    user_message = "No application profile is associated with this identity."


class NoOrganizationError(IdentityResolutionError):
    kind = "no_organization"
    user_message = "Your profile is not linked to any organization."


class OrganizationNotFoundError(IdentityResolutionError):
    kind = "organization_not_found"
    user_message = "The organization linked to your profile no longer exists."


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------


class ServiceUnavailableError(AppError):
    kind = "service_unavailable"
    user_message = "The service is temporarily unavailable. Try again later."


class TransientStoreError(ServiceUnavailableError):
    kind = "store_unavailable"


# ---------------------------------------------------------------------------
# Data errors
# ---------------------------------------------------------------------------


class EntityValidationError(AppError, ValueError):
    kind = "validation_failed"
    user_message = "Some of the submitted data is invalid."


class RecordNotFoundError(AppError):
    kind = "not_found"
    user_message = "The requested record does not exist."


class DuplicateRecordError(AppError):
    kind = "duplicate"
    user_message = "A record with the same unique value already exists."


class OwnerNotResolvedError(AppError):
    kind = "owner_not_resolved"
    user_message = "This organization has no valid owner."


class LimitExceededError(AppError):
    kind = "limit_exceeded"
    user_message = "The organization has reached its user limit."


class StorageLimitExceededError(AppError):
    kind = "storage_limit_exceeded"
    user_message = "The organization has reached its storage limit."
