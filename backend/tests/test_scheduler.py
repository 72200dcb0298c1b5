"""Tests for the periodic reaper job."""

from datetime import timedelta

from sqlalchemy.orm import sessionmaker

import burnlink.scheduler as scheduler_module
from burnlink.models.secret import Secret
from burnlink.services.secret_service import create_secret
from tests.test_utils import FakeClock, utcnow


def _bind_session_local(monkeypatch, db_session):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=db_session.get_bind())
    monkeypatch.setattr(scheduler_module, "SessionLocal", factory)


def test_cleanup_job_deletes_finished_secrets(db_session, cipher, monkeypatch):
    _bind_session_local(monkeypatch, db_session)
    create_secret(db_session, cipher, "x", expires_at=utcnow() - timedelta(minutes=5))
    keep = create_secret(db_session, cipher, "x")

    deleted = scheduler_module.cleanup_job()

    assert deleted == 1
    db_session.expire_all()
    assert [s.id for s in db_session.query(Secret).all()] == [keep.id]


def test_cleanup_job_evicts_stale_attempt_windows(db_session, monkeypatch, attempt_limiter, clock):
    _bind_session_local(monkeypatch, db_session)
    attempt_limiter.hit("203.0.113.1:abc")
    clock.advance(301)

    scheduler_module.cleanup_job(attempt_limiter)

    assert len(attempt_limiter) == 0


def test_cleanup_job_logs_and_survives_failures(monkeypatch, caplog):
    class BrokenSession:
        def close(self):
            pass

    def broken_sweep(db):
        raise RuntimeError("boom")

    monkeypatch.setattr(scheduler_module, "SessionLocal", BrokenSession)
    monkeypatch.setattr(scheduler_module, "delete_finished_secrets", broken_sweep)

    assert scheduler_module.cleanup_job() == 0
    assert "Cleanup failed: boom" in caplog.text


def test_start_registers_job_with_limiter(monkeypatch):
    started = []
    monkeypatch.setattr(scheduler_module.scheduler, "start", lambda: started.append(True))
    limiter_ref = object()

    scheduler_module.start_scheduler(limiter_ref)
    try:
        job = scheduler_module.scheduler.get_job(scheduler_module.JOB_ID)
        assert job is not None
        assert job.kwargs == {"attempt_limiter": limiter_ref}
        assert started == [True]
    finally:
        scheduler_module.scheduler.remove_job(scheduler_module.JOB_ID)


def test_fake_clock_helper():
    clock = FakeClock(start=5)
    clock.advance(2.5)
    assert clock() == 7.5
