from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / "Chowk"
    api_prefix: str = "/api/v1"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Attendance codes are generous by default: a worker may travel overnight
    # before the job starts.
    otp_ttl_seconds: int = 24 * 60 * 60
    default_job_duration_days: int = 1
    default_country_code: str = "91"

    # Outbound delivery is spaced out to stay under the chat provider's spam limits.
    message_delay_seconds: float = 2.0
    notification_queue_size: int = 1000
    gateway_url: str | None = None
    gateway_token: str | None = None
    ocr_url: str | None = None
    max_image_bytes: int = 5 * 1024 * 1024  # 5 MiB

    admin_session_seconds: int = 900  # 15 minutes

    @property
    def db_path(self) -> Path:
        return self.data_dir / "chowk.sqlite"

    model_config = {"env_prefix": "CHOWK_"}


settings = Settings()
