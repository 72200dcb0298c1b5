from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Database
    database_url: str = "sqlite:///./secrets.db"

    # Server-side encryption: base64 of 32 raw bytes. No default on purpose.
    encryption_key: str | None = None

    # Share links
    public_base_url: str = "http://localhost:3000"

    # Limits
    max_content_size: int = 100_000  # characters

    # Password attempt limiting (per client + secret)
    view_attempt_window_seconds: int = 300  # 5 minutes
    view_attempt_max: int = 5
    view_attempt_evict_threshold: int = 10_000

    # Reaper
    cleanup_interval_minutes: int = 60
    scheduler_enabled: bool = True

    # Rate Limiting (per IP, HTTP layer)
    rate_limit_creates: str = "10/minute"
    rate_limit_mutations: str = "30/minute"

    # Peers whose X-Forwarded-For is honoured (addresses or CIDR networks)
    trusted_proxies: list[str] | str = ["127.0.0.1", "::1"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"  # "console" | "json"

    # CORS
    cors_origins: list[str] | str = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("cors_origins", "trusted_proxies", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins or proxy addresses from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


settings = Settings()
