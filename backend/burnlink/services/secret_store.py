"""
Record store for secrets.

Thin semantic layer over a SQLAlchemy session. Every persistence failure is
rolled back and re-raised as ``StoreError`` so the lifecycle layer never
sees driver exceptions.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import and_, not_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from burnlink.errors import StoreError
from burnlink.models.secret import Secret

UPDATABLE_FIELDS = frozenset(
    {"ciphertext", "iv", "auth_tag", "password_hash", "expires_at", "one_time_access"}
)


class SecretStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreError(f"{operation} failed: {e}") from e

    def insert(self, secret: Secret) -> str:
        with self._guard("insert"):
            self.db.add(secret)
            self.db.commit()
            self.db.refresh(secret)
        return secret.id

    def fetch_by_id(self, secret_id: str) -> Secret | None:
        with self._guard("fetch"):
            return self.db.query(Secret).filter(Secret.id == secret_id).first()

    def conditional_mark_viewed(self, secret_id: str) -> bool:
        """
        Flip ``viewed`` from false to true in a single conditional UPDATE.

        Returns True only for the caller whose statement performed the
        transition; concurrent callers racing on the same row get False.
        """
        with self._guard("mark_viewed"):
            changed = (
                self.db.query(Secret)
                .filter(Secret.id == secret_id, Secret.viewed == False)  # noqa: E712
                .update({"viewed": True}, synchronize_session="fetch")
            )
            self.db.commit()
        return changed == 1

    def update(
        self, secret_id: str, fields: dict[str, Any], live_at: datetime | None = None
    ) -> bool:
        """
        Apply ``fields`` to one row in a single UPDATE.

        The statement never matches a consumed one-time secret. With
        ``live_at`` it also skips rows that expired before that instant.
        Returns False when no row matched.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        conditions = [
            Secret.id == secret_id,
            not_(and_(Secret.viewed == True, Secret.one_time_access == True)),  # noqa: E712
        ]
        if live_at is not None:
            conditions.append(
                or_(Secret.expires_at == None, Secret.expires_at >= live_at)  # noqa: E711
            )
        with self._guard("update"):
            changed = (
                self.db.query(Secret)
                .filter(*conditions)
                .update(fields, synchronize_session="fetch")
            )
            self.db.commit()
        return changed == 1

    def delete_by_id(self, secret_id: str) -> bool:
        with self._guard("delete"):
            deleted = (
                self.db.query(Secret)
                .filter(Secret.id == secret_id)
                .delete(synchronize_session="fetch")
            )
            self.db.commit()
        return deleted == 1

    def delete_finished(self, now: datetime) -> int:
        """Delete secrets that expired at or before ``now`` or were consumed. Returns the count."""
        with self._guard("delete_finished"):
            deleted = (
                self.db.query(Secret)
                .filter(
                    or_(
                        and_(
                            Secret.expires_at != None,  # noqa: E711
                            Secret.expires_at <= now,
                        ),
                        and_(
                            Secret.viewed == True,  # noqa: E712
                            Secret.one_time_access == True,  # noqa: E712
                        ),
                    )
                )
                .delete(synchronize_session="fetch")
            )
            self.db.commit()
        return deleted

    def list_by_owner(self, owner_id: str) -> list[Secret]:
        with self._guard("list_by_owner"):
            return (
                self.db.query(Secret)
                .filter(Secret.owner_id == owner_id)
                .order_by(Secret.created_at.desc(), Secret.id.desc())
                .all()
            )
