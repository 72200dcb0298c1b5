import uuid
from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from burnlink.database import Base


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class Secret(Base):
    __tablename__ = "secrets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Encrypted payload (server-side layer)
    ciphertext: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    iv: Mapped[bytes] = mapped_column(LargeBinary(12), nullable=False)
    auth_tag: Mapped[bytes] = mapped_column(LargeBinary(16), nullable=False)

    # Access control
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True, default=None)
    one_time_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    viewed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timing
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow, nullable=False
    )
