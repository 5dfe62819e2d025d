from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./wooffy.db"

    # Application URLs
    frontend_url: str = "http://localhost:5173"

    # Bearer token verification (tokens minted by the hosted identity provider)
    auth_jwt_secret: str = "change-me"
    auth_jwt_audience: str = "authenticated"
    auth_jwt_algorithms: list[str] = Field(default_factory=lambda: ["HS256"])

    @field_validator("auth_jwt_algorithms", mode="before")
    @classmethod
    def _parse_algorithms(cls, value: object) -> list[str]:
        return cls._parse_str_list(value) or ["HS256"]

    # Member verification lockout
    verification_max_failed_attempts: int = 10
    verification_rate_limit_window_minutes: int = 15
    verification_lockout_minutes: int = 30
    member_code_max_length: int = 50
    display_timezone: str = "Europe/Nicosia"

    # Reminder jobs
    expiry_reminder_horizon_days: int = 30
    birthday_reminder_days: list[int] = Field(default_factory=lambda: [0, 1, 2, 3])
    membership_grace_period_days: int = 7
    proactive_alert_birthday_horizon_days: int = 14

    @field_validator("birthday_reminder_days", mode="before")
    @classmethod
    def _parse_reminder_days(cls, value: object) -> list[int]:
        return [int(item) for item in cls._parse_str_list(value)]

    # Email / notification settings
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    smtp_sender_email: str | None = None

    # Pet health assistant proxy
    assistant_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    assistant_api_key: str | None = None
    assistant_model: str = "google/gemini-2.5-flash"
    assistant_timeout_seconds: float = 30.0
    assistant_rate_limit_requests: int = 20
    assistant_rate_limit_window_seconds: int = 60
    assistant_rate_limit_cleanup_seconds: int = 300
    assistant_max_messages: int = 50
    assistant_max_message_length: int = 10000

    # Scheduled job triggers
    jobs_api_key: str = ""
    reminder_scheduler_enabled: bool = False
    reminder_schedule_path: str = "config/schedules.toml"

    @staticmethod
    def _parse_str_list(value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return []


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
