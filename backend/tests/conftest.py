import base64
import os

# Must be set before burnlink.config builds its Settings
os.environ.setdefault("ENCRYPTION_KEY", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import burnlink.main as main_module  # noqa: E402
from burnlink.database import Base, get_db  # noqa: E402
from burnlink.main import app  # noqa: E402
from burnlink.middleware.rate_limit import limiter  # noqa: E402
from burnlink.services.attempt_limiter import AttemptLimiter  # noqa: E402
from burnlink.services.crypto_utils import ServerCipher  # noqa: E402
from tests.test_utils import FakeClock  # noqa: E402


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cipher():
    return ServerCipher(b"c" * 32)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def attempt_limiter(clock):
    return AttemptLimiter(window_seconds=300, max_attempts=5, clock=clock)


@pytest.fixture
def client(db_session):
    """Create a test client with the test database and disabled per-IP rate limiting."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # Disable slowapi throttling; the per-secret attempt limiter stays on
    limiter.enabled = False

    # Override the engine used by check_database_tables() so it checks the test database
    original_engine = main_module.engine
    main_module.engine = db_session.get_bind()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True
    main_module.engine = original_engine
