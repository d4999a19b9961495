from datetime import time
from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://sileme:sileme@db:5432/sileme"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # IANA zone used for every day boundary (streaks, uniqueness, reminders).
    TIMEZONE: str = "Asia/Shanghai"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    DISPATCH_INTERVAL_SECONDS: int = 60
    CLEANUP_TIME: str = "02:00"
    REMINDER_TIME: str = "09:00"
    REMINDER_DEDUPE: bool = True
    DELIVERY_TIMEOUT_SECONDS: float = 5.0

    # Notifications
    NOTIFICATION_EXPIRY_DAYS: int = 30

    # Check-ins
    CHECKIN_NOTE_MAX_LENGTH: int = 200
    CHECKIN_MAX_TAGS: int = 10
    CHECKIN_TAG_MAX_LENGTH: int = 20
    EARLY_BIRD_HOUR: int = 6

    # Users
    MAX_EMERGENCY_CONTACTS: int = 5

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

    @property
    def cleanup_at(self) -> time:
        return parse_hhmm(self.CLEANUP_TIME)

    @property
    def reminder_at(self) -> time:
        return parse_hhmm(self.REMINDER_TIME)


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" into a time. Raises ValueError on anything else."""
    hours, _, minutes = value.strip().partition(":")
    return time(int(hours), int(minutes or 0))


settings = Settings()
