import tempfile
from pathlib import Path

from sqlalchemy import create_engine, inspect

import burnlink.config as config_module
from alembic import command
from alembic.config import Config

BACKEND_DIR = Path(__file__).resolve().parent.parent


def test_alembic_upgrade_head_on_fresh_sqlite_db():
    original_database_url = config_module.settings.database_url
    try:
        with tempfile.TemporaryDirectory() as tmpdir:
            db_path = Path(tmpdir) / "fresh.db"
            database_url = f"sqlite:///{db_path}"

            config_module.settings.database_url = database_url

            alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
            command.upgrade(alembic_cfg, "head")

            engine = create_engine(
                database_url,
                connect_args={"check_same_thread": False},
            )
            inspector = inspect(engine)
            tables = set(inspector.get_table_names())
            assert "secrets" in tables

            columns = {column["name"] for column in inspector.get_columns("secrets")}
            assert {
                "id",
                "owner_id",
                "ciphertext",
                "iv",
                "auth_tag",
                "password_hash",
                "one_time_access",
                "viewed",
                "expires_at",
                "created_at",
                "updated_at",
            } == columns
            engine.dispose()
    finally:
        config_module.settings.database_url = original_database_url
