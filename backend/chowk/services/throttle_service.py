"""
Persistent failure throttle shared by admin login and OTP verification.

Counters live in the auth_throttle table so a restart does not hand an
attacker a fresh budget of guesses.
"""
import time

from sqlalchemy import text
from sqlalchemy.orm import Session

FREE_ATTEMPTS = 3


def _delay_for(failed_attempts: int) -> float:
    if failed_attempts < FREE_ATTEMPTS:
        return 0.0
    if failed_attempts < 5:
        return 5.0
    if failed_attempts < 10:
        return 30.0
    return 300.0


def get_throttle_delay(db: Session, key: str, now: float | None = None) -> float:
    row = db.execute(
        text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
        {"key": key},
    ).fetchone()
    if not row:
        return 0.0
    delay = _delay_for(int(row[0]))
    elapsed = (now or time.time()) - float(row[1])
    return max(0.0, delay - elapsed)


def record_failed_attempt(db: Session, key: str) -> None:
    """Count a failure. Does not commit: the caller owns the transaction."""
    db.execute(
        text(
            """
            INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
            VALUES (:key, 1, :now)
            ON CONFLICT(key) DO UPDATE SET
                failed_attempts = failed_attempts + 1,
                last_failed_at = :now
            """
        ),
        {"key": key, "now": time.time()},
    )


def reset_failed_attempts(db: Session, key: str) -> None:
    db.execute(text("DELETE FROM auth_throttle WHERE key = :key"), {"key": key})
