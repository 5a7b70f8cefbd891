from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App
    PROJECT_NAME: str = "Vitals Relay"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = ""  # local, dev, prod (from .env)

    # CORS (from .env, comma-separated)
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Logging & Sentry
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None

    # Streaming
    CHANNEL_QUEUE_SIZE: int = 100
    MONITOR_QUEUE_SIZE: int = 1000
    HISTORY_SIZE: int = 6

    # Alerts
    ALERT_RULES_PATH: str | None = None
    ALERT_RETENTION: int = 10

    # Emergency escalation
    FACILITIES_PATH: str | None = None
    INCIDENT_HISTORY_SIZE: int = 50
    GEOLOCATION_PROVIDER: Literal["reported", "static", "none"] = "reported"
    GEOLOCATION_TIMEOUT_SECONDS: float = 10.0
    LOCATION_MAX_AGE_SECONDS: int = 300
    DEVICE_LATITUDE: float | None = None
    DEVICE_LONGITUDE: float | None = None

    # Notification dispatch (webhook takes precedence over SMTP)
    NOTIFY_RECIPIENT: str = ""
    NOTIFY_TIMEOUT_SECONDS: float = 15.0
    NOTIFY_WEBHOOK_URL: str | None = None
    NOTIFY_WEBHOOK_TOKEN: str | None = None
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM: str = "vitals-relay@localhost"

    # AI summary (OpenAI-compatible chat completions endpoint)
    AI_API_URL: str | None = None
    AI_API_KEY: str | None = None
    AI_MODEL: str = "gpt-4o-mini"
    AI_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )


settings = Settings()
