"""
camp_portal.errors

Error taxonomy for the identity service.

Responsibilities:
- Define client-facing errors with a stable status code, error code and message.
- Define process-level failures (configuration, hashing) that never reach clients
  with their internal details.
"""

from __future__ import annotations

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_429_TOO_MANY_REQUESTS,
    HTTP_500_INTERNAL_SERVER_ERROR,
)


class CampPortalError(Exception):
    """
    Base class for errors rendered as `{"error": message, "code": error_code}`.
    """

    status_code: int = HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    default_message: str = "An unexpected server error occurred."
    headers: dict[str, str] | None = None

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingOrMalformedCredential(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "missing_or_malformed_credential"
    default_message = "Authorization token is required."


class MalformedToken(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "malformed_token"
    default_message = "Invalid token. Authorization denied."


class BadSignature(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "bad_signature"
    default_message = "Invalid token. Authorization denied."


class TokenExpired(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "token_expired"
    default_message = "Token has expired. Please log in again."


class ExternalTokenExpired(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "external_token_expired"
    default_message = "Token has expired. Please log in again."


class ExternalTokenInvalid(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "external_token_invalid"
    default_message = "Invalid token. Authorization denied."


class PrincipalNotFound(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "principal_not_found"
    default_message = "Request is not authorized."


class TokenRevoked(CampPortalError):
    status_code = HTTP_401_UNAUTHORIZED
    error_code = "token_revoked"
    default_message = "Session has been revoked. Please log in again."


class InsufficientRole(CampPortalError):
    status_code = HTTP_403_FORBIDDEN
    error_code = "insufficient_role"
    default_message = "Access denied."


class PermissionDenied(CampPortalError):
    status_code = HTTP_403_FORBIDDEN
    error_code = "permission_denied"
    default_message = "Insufficient permissions."


class InvalidCredentials(CampPortalError):
    # Same message whether or not the account exists.
    status_code = HTTP_400_BAD_REQUEST
    error_code = "invalid_credentials"
    default_message = "Invalid credentials."


class InvalidResetToken(CampPortalError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "invalid_reset_token"
    default_message = "Invalid or expired token."


class DuplicateAccount(CampPortalError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "duplicate_account"
    default_message = "User already exists."


class InvalidRequest(CampPortalError):
    status_code = HTTP_400_BAD_REQUEST
    error_code = "validation_error"
    default_message = "Validation error."


class AccountNotFound(CampPortalError):
    status_code = HTTP_404_NOT_FOUND
    error_code = "account_not_found"
    default_message = "User not found."


class TooManyRequests(CampPortalError):
    status_code = HTTP_429_TOO_MANY_REQUESTS
    error_code = "rate_limited"
    default_message = "Too many requests, please try again later."

    def __init__(self, message: str | None = None, *, retry_after: int | None = None) -> None:
        super().__init__(message)
        if retry_after is not None:
            self.headers = {"Retry-After": str(retry_after)}


class ProviderConfigError(CampPortalError):
    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "provider_config_error"
    default_message = "Identity provider configuration error."


class ConfigurationError(Exception):
    """Raised at startup when required configuration is missing or invalid."""


class PasswordHashError(Exception):
    """Raised when a secret cannot be hashed; callers must abort the operation."""


# --- Module Notes -----------------------------------------------------------
# Exception handlers in `api.errors` translate `CampPortalError` into JSON responses.
# Everything else surfaces as a generic 500 without internals.
