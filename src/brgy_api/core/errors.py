"""Error kinds raised by the authentication core.

Every failure the service layer can produce is one of these classes. Each
carries a stable machine-readable ``code``, a user-visible ``message`` and
the HTTP status the API layer renders it with. Store-level detail is never
part of the message.
"""


class BrgyApiError(Exception):
    """Base class for all domain errors."""

    code: str = "error"
    message: str = "Unexpected error"
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ConfigurationError(BrgyApiError):
    """A required collaborator is not configured."""

    code = "not_configured"
    message = "Service is not configured"


class SigningKeyMissingError(ConfigurationError):
    code = "signing_key_missing"
    message = "JWT secret not configured"


class EmailNotConfiguredError(ConfigurationError):
    code = "email_not_configured"
    message = "Email service not configured"


class EmailTakenError(BrgyApiError):
    code = "email_taken"
    message = "User with this email already exists"
    status_code = 409


class InvalidCredentialsError(BrgyApiError):
    """Wrong password or unknown email; the two are deliberately indistinguishable."""

    code = "invalid_credentials"
    message = "Invalid credentials"
    status_code = 401


class UserNotFoundError(BrgyApiError):
    code = "user_not_found"
    message = "User not found"
    status_code = 404


class InvalidOtpError(BrgyApiError):
    code = "invalid_otp"
    message = "Invalid OTP code"
    status_code = 400


class OtpAlreadyUsedError(BrgyApiError):
    code = "otp_already_used"
    message = "OTP already used"
    status_code = 400


class OtpExpiredError(BrgyApiError):
    code = "otp_expired"
    message = "OTP code has expired"
    status_code = 400


class InvalidTokenError(BrgyApiError):
    code = "invalid_token"
    message = "Could not validate credentials"
    status_code = 401


class TokenExpiredError(InvalidTokenError):
    code = "token_expired"
    message = "Session token has expired"


class NotificationFailureError(BrgyApiError):
    code = "notification_failure"
    message = "Failed to send OTP email"
    status_code = 502


class StoreUnavailableError(BrgyApiError):
    code = "store_unavailable"
    message = "Service temporarily unavailable"
    status_code = 503
