"""
Failure modes of the secret lifecycle.

Every error except ``StoreError`` carries a message that is safe to show to
the person on the other end of the link. ``StoreError`` wraps persistence
failures; its detail is logged and the caller only sees a generic message.
"""


class SecretError(Exception):
    """Base class for lifecycle failures surfaced to callers."""

    status_code: int = 400
    code: str = "secret_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(SecretError):
    status_code = 400
    code = "validation_error"
    default_message = "Invalid request"


class NotFound(SecretError):
    status_code = 404
    code = "not_found"
    default_message = "Secret not found or has been deleted"


class AlreadyConsumed(SecretError):
    status_code = 410
    code = "already_consumed"
    default_message = "This secret has already been viewed and is no longer available"


class Expired(SecretError):
    status_code = 410
    code = "expired"
    default_message = "This secret has expired and is no longer available"


class PasswordRequired(SecretError):
    status_code = 401
    code = "password_required"
    default_message = "This secret is password protected. Please enter the password."


class InvalidPassword(SecretError):
    status_code = 401
    code = "invalid_password"
    default_message = "Incorrect password. Please try again."


class NotOwner(SecretError):
    status_code = 403
    code = "not_owner"
    default_message = "Only the owner of this secret can change it"


class RateLimited(SecretError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(
            f"Too many attempts. Please try again in {self.retry_after_seconds} seconds."
        )

    @property
    def retry_after_seconds(self) -> int:
        """Whole seconds to wait, rounded up and never below one."""
        whole = int(self.retry_after)
        if whole < self.retry_after:
            whole += 1
        return max(whole, 1)


class DecryptionFailure(SecretError):
    status_code = 500
    code = "decryption_failure"
    default_message = "Failed to decrypt secret content"


class StoreError(SecretError):
    status_code = 500
    code = "store_error"
    default_message = "Failed to process request"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__()


class EncryptionKeyConfigError(ValueError):
    """Raised at startup when the server-side encryption key is unusable."""
