import sqlite3
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from chowk.config import settings


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


def get_engine(db_path: Path | None = None):
    path = db_path or settings.db_path
    engine = create_engine(
        f"sqlite:///{path}",
        # Concurrent acceptances queue on the write lock instead of failing fast.
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


engine = get_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for work that outlives the request, such as background matching."""
    return SessionLocal


SCHEMA_SQL = """\
-- ============================================================
-- ADMIN CONFIGURATION
-- ============================================================
CREATE TABLE IF NOT EXISTS admin_config (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- ============================================================
-- AUTH THROTTLE (admin login and OTP verification)
-- ============================================================
CREATE TABLE IF NOT EXISTS auth_throttle (
    key             TEXT PRIMARY KEY,
    failed_attempts INTEGER NOT NULL,
    last_failed_at  REAL NOT NULL
);

-- ============================================================
-- IDENTITIES (workers and contractors)
-- ============================================================
CREATE TABLE IF NOT EXISTS identities (
    phone_number       TEXT PRIMARY KEY,
    role               TEXT NOT NULL DEFAULT 'worker'
                       CHECK(role IN ('worker','contractor')),
    name               TEXT,
    city               TEXT,
    location           TEXT,
    skill              TEXT,
    preferred_language TEXT NOT NULL DEFAULT 'en',
    national_id        TEXT,
    available_from     TEXT,
    is_onboarded       INTEGER NOT NULL DEFAULT 0,
    created_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_identities_role ON identities(role);
CREATE INDEX IF NOT EXISTS idx_identities_city ON identities(city);
CREATE INDEX IF NOT EXISTS idx_identities_skill ON identities(skill);

-- ============================================================
-- CONVERSATION STATES (one active flow per phone)
-- ============================================================
CREATE TABLE IF NOT EXISTS conversation_states (
    phone_number TEXT PRIMARY KEY,
    current_step TEXT NOT NULL,
    context_data TEXT NOT NULL DEFAULT '{}',
    role         TEXT NOT NULL DEFAULT 'worker'
                 CHECK(role IN ('worker','contractor')),
    updated_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

-- ============================================================
-- JOBS
-- ============================================================
CREATE TABLE IF NOT EXISTS jobs (
    id                 TEXT PRIMARY KEY,
    contractor_phone   TEXT NOT NULL REFERENCES identities(phone_number),
    title              TEXT,
    skill_required     TEXT NOT NULL,
    wage               TEXT NOT NULL,
    city               TEXT,
    location           TEXT,
    meeting_point      TEXT,
    workers_needed     INTEGER NOT NULL CHECK(workers_needed BETWEEN 1 AND 100),
    workers_remaining  INTEGER NOT NULL CHECK(workers_remaining >= 0),
    start_date         TEXT NOT NULL,
    end_date           TEXT NOT NULL,
    insurance_provided INTEGER NOT NULL DEFAULT 0,
    status             TEXT NOT NULL DEFAULT 'OPEN'
                       CHECK(status IN ('OPEN','FILLED','CANCELLED')),
    created_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at         TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now'))
);

CREATE INDEX IF NOT EXISTS idx_jobs_status ON jobs(status);
CREATE INDEX IF NOT EXISTS idx_jobs_contractor ON jobs(contractor_phone);
CREATE INDEX IF NOT EXISTS idx_jobs_city ON jobs(city);

-- ============================================================
-- APPLICATIONS (one per job x worker, carries the attendance protocol)
-- ============================================================
CREATE TABLE IF NOT EXISTS applications (
    id                   TEXT PRIMARY KEY,
    job_id               TEXT NOT NULL REFERENCES jobs(id),
    worker_phone         TEXT NOT NULL REFERENCES identities(phone_number),
    status               TEXT NOT NULL DEFAULT 'PENDING'
                         CHECK(status IN ('PENDING','WORKER_ACCEPTED','CONTRACTOR_CONFIRMED',
                                          'REJECTED','CANCELLED','COMPLETED')),
    otp                  TEXT,
    otp_expires_at       TEXT,
    attendance_status    TEXT NOT NULL DEFAULT 'NOT_MARKED'
                         CHECK(attendance_status IN ('NOT_MARKED','PRESENT')),
    attendance_marked_at TEXT,
    cancelled_by         TEXT CHECK(cancelled_by IN ('worker','contractor')),
    created_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    updated_at           TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ','now')),
    UNIQUE (job_id, worker_phone)
);

CREATE INDEX IF NOT EXISTS idx_applications_job ON applications(job_id);
CREATE INDEX IF NOT EXISTS idx_applications_worker ON applications(worker_phone);
CREATE INDEX IF NOT EXISTS idx_applications_status ON applications(status);
CREATE INDEX IF NOT EXISTS idx_applications_otp ON applications(otp);
"""


MIGRATIONS = [
    # v0.2: meeting point shown in the worker's OTP message
    "ALTER TABLE jobs ADD COLUMN meeting_point TEXT",
    # v0.3: location kept alongside the derived city
    "ALTER TABLE identities ADD COLUMN location TEXT",
]


def init_db(db_path: Path | None = None):
    path = db_path or settings.db_path
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.executescript(SCHEMA_SQL)
    # Run migrations idempotently (ALTER TABLE fails if the column exists)
    for migration in MIGRATIONS:
        try:
            conn.execute(migration)
            conn.commit()
        except sqlite3.OperationalError:
            pass  # column already exists
    conn.close()
