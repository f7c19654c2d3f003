"""Typed service errors. Each carries the HTTP status and the client-safe message.

Errors are raised by the services and translated once, by the exception handlers
registered on the FastAPI app (tessera.api.errors). Messages are fixed strings so
nothing internal leaks to clients.
"""


class AuthServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 400
    default_message: str = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentialsError(AuthServiceError):
    """Unknown email or wrong password. Both cases share one message."""

    default_message = "Invalid email or password"


class UserAlreadyExistsError(AuthServiceError):
    """Registration with an email that is already taken."""

    default_message = "User with this email already exists"


class InvalidRefreshTokenError(AuthServiceError):
    """Refresh token missing, unknown, expired or revoked."""

    status_code = 401
    default_message = "Invalid refresh token"


class InvalidOrExpiredResetTokenError(AuthServiceError):
    """Password reset token missing, unknown, expired or already used."""

    default_message = "Invalid or expired reset token"


class AntiForgeryValidationError(AuthServiceError):
    """Double-submit anti-forgery pair missing or not matching."""

    default_message = "Anti-forgery token validation failed"


class UserNotFoundError(AuthServiceError):
    status_code = 404
    default_message = "User not found"


class InvalidEmailError(AuthServiceError):
    default_message = "Invalid email format"


class WeakPasswordError(AuthServiceError):
    default_message = "Password does not meet the password policy"


class PasswordResetRequestError(AuthServiceError):
    """Reset request could not be completed (persistence or email delivery)."""

    status_code = 500
    default_message = "Failed to process password reset request. Please try again later."


class PersistenceError(AuthServiceError):
    """Commit failed or affected no rows; details are logged server-side only."""

    status_code = 500
    default_message = "Something went wrong. Please try again later."


class IdentityProviderError(AuthServiceError):
    """OAuth provider unreachable, misconfigured, or rejected the exchange."""

    status_code = 502
    default_message = "Sign-in with the identity provider failed. Please try again."

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class TokenAlreadyRevokedError(Exception):
    """Store-level: revoke() found nothing to change. Not shown to clients."""


class EmailDeliveryError(Exception):
    """Store-level: the email collaborator failed. Not shown to clients."""
