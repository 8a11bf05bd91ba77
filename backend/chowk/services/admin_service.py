import time

from sqlalchemy.orm import Session

from chowk.config import settings
from chowk.models.admin import AdminConfig
from chowk.services.throttle_service import (
    get_throttle_delay,
    record_failed_attempt,
    reset_failed_attempts,
)
from chowk.utils.clock import now_iso
from chowk.utils.security import generate_token, hash_passphrase, verify_passphrase


class AdminAuthService:
    """Passphrase-protected sessions for the administrative read API."""

    def __init__(self):
        self._active_tokens: dict[str, float] = {}  # token -> expires_at

    def _cleanup_expired(self):
        now = time.time()
        self._active_tokens = {t: exp for t, exp in self._active_tokens.items() if exp > now}

    def is_configured(self, db: Session) -> bool:
        return db.get(AdminConfig, "passphrase_hash") is not None

    def setup(self, db: Session, passphrase: str) -> None:
        now = now_iso()
        db.merge(AdminConfig(key="passphrase_hash", value=hash_passphrase(passphrase), updated_at=now))
        db.merge(AdminConfig(key="created_at", value=now, updated_at=now))
        db.commit()

    def login(self, db: Session, passphrase: str, throttle_key: str = "login") -> dict | None:
        delay = get_throttle_delay(db, throttle_key)
        if delay > 0:
            return {"error": "too_many_attempts", "retry_after_seconds": delay}

        row = db.get(AdminConfig, "passphrase_hash")
        if not row or not verify_passphrase(row.value, passphrase):
            record_failed_attempt(db, throttle_key)
            db.commit()
            return None

        reset_failed_attempts(db, throttle_key)
        db.commit()
        token = generate_token()
        self._active_tokens[token] = time.time() + settings.admin_session_seconds
        return {"token": token, "expires_in_seconds": settings.admin_session_seconds}

    def logout(self):
        self._active_tokens.clear()

    @property
    def active_sessions(self) -> int:
        self._cleanup_expired()
        return len(self._active_tokens)

    def validate_token(self, token: str) -> bool:
        self._cleanup_expired()
        return token in self._active_tokens

    def touch(self, token: str):
        if token in self._active_tokens:
            self._active_tokens[token] = time.time() + settings.admin_session_seconds


admin_service = AdminAuthService()
