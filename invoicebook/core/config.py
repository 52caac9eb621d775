# invoicebook/core/config.py

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///db.sqlite"  # file in project root
    LOG_LEVEL: str = "INFO"

    DEFAULT_CURRENCY: str = "NGN"
    # Used for "today" / "now" when a form leaves the date out
    TIMEZONE: str = "Africa/Lagos"

    RECENT_ACTIVITY_LIMIT: int = 3

    class Config:
        env_file = ".env"


settings = Settings()
