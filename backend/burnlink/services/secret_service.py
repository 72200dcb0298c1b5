from datetime import UTC, datetime

import structlog
from sqlalchemy.orm import Session

from burnlink.config import settings
from burnlink.errors import (
    AlreadyConsumed,
    Expired,
    InvalidPassword,
    NotFound,
    NotOwner,
    PasswordRequired,
    RateLimited,
    ValidationError,
)
from burnlink.logging_config import secret_ref
from burnlink.models.secret import Secret
from burnlink.services.attempt_limiter import AttemptLimiter
from burnlink.services.crypto_utils import (
    EncryptedPayload,
    ServerCipher,
    hash_password,
    verify_password,
)
from burnlink.services.secret_store import SecretStore

logger = structlog.get_logger()

STATUS_ACTIVE = "active"
STATUS_VIEWED = "viewed"
STATUS_EXPIRED = "expired"


def utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def normalize_expiry(expires_at: datetime | None) -> datetime | None:
    """Convert an expiry to naive UTC, the form stored in the database."""
    if expires_at is None:
        return None
    if not isinstance(expires_at, datetime):
        raise ValidationError("Expiry must be a date and time")
    if expires_at.tzinfo is not None:
        return expires_at.astimezone(UTC).replace(tzinfo=None)
    return expires_at


def _validate_content(content: str) -> None:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Secret content is required")
    if len(content) > settings.max_content_size:
        raise ValidationError(f"Secret content exceeds {settings.max_content_size} characters")


def _is_consumed(secret: Secret) -> bool:
    return bool(secret.viewed and secret.one_time_access)


def _is_expired(secret: Secret, now: datetime) -> bool:
    return secret.expires_at is not None and secret.expires_at < now


def _check_owner(secret: Secret, requester_owner_id: str | None) -> None:
    """Owned secrets change only by their owner; anonymous ones by anyone holding the id."""
    """Secrets with an owner can only be changed by that owner; anonymous ones by anyone holding the id."""
    if secret.owner_id is not None and secret.owner_id != requester_owner_id:
        raise NotOwner()


def _check_editable(secret: Secret, now: datetime) -> None:
    if _is_consumed(secret):
        raise AlreadyConsumed("Cannot edit a secret that has already been viewed")
    if _is_expired(secret, now):
        raise Expired("Cannot edit a secret that has already expired")


def derive_status(secret: Secret, now: datetime | None = None) -> str:
    """
    Compute a secret's status on read. Never stored.

    viewed  - one-time secret that has been revealed
    expired - expiry set and in the past
    active  - everything else
    """
    if _is_consumed(secret):
        return STATUS_VIEWED
    if _is_expired(secret, now or utcnow()):
        return STATUS_EXPIRED
    return STATUS_ACTIVE


def create_secret(
    db: Session,
    cipher: ServerCipher,
    content: str,
    password: str | None = None,
    expires_at: datetime | None = None,
    one_time_access: bool = False,
    owner_id: str | None = None,
) -> Secret:
    """
    Encrypt and store a new secret.

    The password, if any, is hashed with Argon2id. The returned record holds
    only ciphertext.
    """
    _validate_content(content)
    payload = cipher.encrypt(content)

    secret = Secret(
        owner_id=owner_id or None,
        ciphertext=payload.ciphertext,
        iv=payload.iv,
        auth_tag=payload.auth_tag,
        password_hash=hash_password(password) if password else None,
        expires_at=normalize_expiry(expires_at),
        one_time_access=one_time_access,
        viewed=False,
    )
    SecretStore(db).insert(secret)

    logger.info(
        "secret_created",
        secret_ref=secret_ref(secret.id),
        one_time_access=secret.one_time_access,
        has_password=secret.password_hash is not None,
        has_expiry=secret.expires_at is not None,
    )
    return secret


def view_secret(
    db: Session,
    cipher: ServerCipher,
    limiter: AttemptLimiter,
    secret_id: str,
    password: str | None,
    requester: str,
) -> dict:
    """
    Reveal a secret's plaintext.

    Checks run in a fixed order and the first failure wins: attempt limit,
    existence, consumption, expiry, password. One-time secrets are marked
    viewed with a conditional update before decrypting, so at most one
    caller ever gets the content.
    """
    attempt = limiter.hit(f"{requester}:{secret_id}")
    if not attempt.allowed:
        logger.info(
            "secret_view_denied", secret_ref=secret_ref(secret_id), reason="rate_limited"
        )
        raise RateLimited(attempt.retry_after)

    store = SecretStore(db)
    secret = store.fetch_by_id(secret_id)
    if secret is None:
        raise NotFound()

    if _is_consumed(secret):
        logger.info(
            "secret_view_denied", secret_ref=secret_ref(secret_id), reason="already_consumed"
        )
        raise AlreadyConsumed()

    if _is_expired(secret, utcnow()):
        logger.info(
            "secret_view_denied", secret_ref=secret_ref(secret_id), reason="expired"
        )
        raise Expired()

    if secret.password_hash:
        if not password:
            raise PasswordRequired()
        if not verify_password(password, secret.password_hash):
            logger.info(
                "secret_view_denied", secret_ref=secret_ref(secret_id), reason="invalid_password"
            )
            raise InvalidPassword()

    # Snapshot before the store call; the commit expires the instance and a
    # concurrent reaper may delete the row.
    one_time_access = secret.one_time_access
    payload = EncryptedPayload(
        ciphertext=secret.ciphertext,
        iv=secret.iv,
        auth_tag=secret.auth_tag,
    )

    if one_time_access and not store.conditional_mark_viewed(secret_id):
        if store.fetch_by_id(secret_id) is None:
            raise NotFound()
        logger.info(
            "secret_view_denied", secret_ref=secret_ref(secret_id), reason="already_consumed"
        )
        raise AlreadyConsumed()

    content = cipher.decrypt(payload)

    logger.info(
        "secret_viewed", secret_ref=secret_ref(secret_id), one_time_access=one_time_access
    )
    return {"content": content, "one_time_access": one_time_access}


def update_secret(
    db: Session,
    cipher: ServerCipher,
    secret_id: str,
    content: str,
    password: str | None = None,
    remove_password: bool = False,
    expires_at: datetime | None = None,
    one_time_access: bool | None = None,
    requester_owner_id: str | None = None,
) -> Secret:
    """
    Replace a secret's content and expiry.

    Content is always re-encrypted. A new password replaces the hash; no
    password leaves the existing hash alone unless ``remove_password`` is
    set. ``one_time_access`` of None keeps the current flag. Consumed or
    expired secrets cannot be edited back to life.
    """
    _validate_content(content)
    if password and remove_password:
        raise ValidationError("Cannot set and remove the password in the same request")

    store = SecretStore(db)
    secret = store.fetch_by_id(secret_id)
    if secret is None:
        raise NotFound()
    _check_owner(secret, requester_owner_id)

    now = utcnow()
    _check_editable(secret, now)

    payload = cipher.encrypt(content)
    fields = {
        "ciphertext": payload.ciphertext,
        "iv": payload.iv,
        "auth_tag": payload.auth_tag,
        "expires_at": normalize_expiry(expires_at),
    }
    if password:
        fields["password_hash"] = hash_password(password)
    elif remove_password:
        fields["password_hash"] = None
    if one_time_access is not None:
        fields["one_time_access"] = one_time_access

    if not store.update(secret_id, fields, live_at=now):
        # A view, the reaper or a delete got there between the read and the write
        current = store.fetch_by_id(secret_id)
        if current is None:
            raise NotFound()
        _check_editable(current, now)
        raise NotFound()

    logger.info(
        "secret_updated",
        secret_ref=secret_ref(secret_id),
        password_changed=bool(password) or remove_password,
    )
    return store.fetch_by_id(secret_id)


def delete_secret(db: Session, secret_id: str, requester_owner_id: str | None = None) -> None:
    store = SecretStore(db)
    secret = store.fetch_by_id(secret_id)
    if secret is None:
        raise NotFound()
    _check_owner(secret, requester_owner_id)

    if not store.delete_by_id(secret_id):
        raise NotFound()
    logger.info("secret_deleted", secret_ref=secret_ref(secret_id))


def list_owner_secrets(db: Session, owner_id: str) -> list[dict]:
    """Summaries of an owner's secrets, newest first. No content, no password hash."""
    now = utcnow()
    return [
        {
            "id": secret.id,
            "expires_at": secret.expires_at,
            "one_time_access": secret.one_time_access,
            "viewed": secret.viewed,
            "has_password": secret.password_hash is not None,
            "created_at": secret.created_at,
            "status": derive_status(secret, now),
        }
        for secret in SecretStore(db).list_by_owner(owner_id)
    ]


def delete_finished_secrets(db: Session, now: datetime | None = None) -> int:
    """
    Reaper sweep: physically delete expired and consumed one-time secrets.

    Idempotent. Returns the number of deleted rows.
    """
    deleted = SecretStore(db).delete_finished(now or utcnow())
    logger.info("reaper_sweep", deleted=deleted)
    return deleted
