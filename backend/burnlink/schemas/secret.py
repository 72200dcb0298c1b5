from datetime import UTC, datetime
from typing import Annotated

from pydantic import BaseModel, Field, PlainSerializer, field_validator

from burnlink.config import settings


def _serialize_utc(dt: datetime) -> str:
    """Stored datetimes are naive UTC; emit them with an explicit Z."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


UTCDateTime = Annotated[datetime, PlainSerializer(_serialize_utc, return_type=str)]


def _to_naive_utc(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is not None:
        return v.astimezone(UTC).replace(tzinfo=None)
    return v


def _check_content(v: str) -> str:
    if not v.strip():
        raise ValueError("Secret content is required")
    if len(v) > settings.max_content_size:
        raise ValueError(f"Secret content exceeds {settings.max_content_size} characters")
    return v


class SecretCreate(BaseModel):
    content: str = Field(..., min_length=1, description="Plaintext or client-sealed content")
    password: str | None = None
    expires_at: datetime | None = None
    one_time_access: bool = False

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _check_content(v)

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime | None) -> datetime | None:
        return _to_naive_utc(v)


class SecretCreateResponse(BaseModel):
    id: str
    share_url: str
    one_time_access: bool
    expires_at: UTCDateTime | None = None
    created_at: UTCDateTime


class SecretViewRequest(BaseModel):
    password: str | None = None


class SecretViewResponse(BaseModel):
    content: str
    one_time_access: bool


class SecretUpdateRequest(BaseModel):
    content: str = Field(..., min_length=1)
    password: str | None = None
    remove_password: bool = False
    expires_at: datetime | None = None
    one_time_access: bool | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _check_content(v)

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime | None) -> datetime | None:
        return _to_naive_utc(v)


class SecretMutationResponse(BaseModel):
    success: bool = True


class SecretSummary(BaseModel):
    id: str
    status: str  # "active" | "viewed" | "expired"
    one_time_access: bool
    viewed: bool
    has_password: bool
    expires_at: UTCDateTime | None = None
    created_at: UTCDateTime
