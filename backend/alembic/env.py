"""
Alembic environment wired to the application's settings and metadata.

DATABASE_URL is read from burnlink's Settings at run time, so the app and
its migrations share one source of truth for the connection string.
"""

import os
import sys

from sqlalchemy import create_engine

from alembic import context

# Make ``backend/`` importable when burnlink is not installed
_BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

import burnlink.models.secret  # noqa: E402, F401
from burnlink.config import settings  # noqa: E402
from burnlink.database import Base  # noqa: E402

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = create_engine(settings.database_url)
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )
        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
