from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    APP_NAME: str = "NPS Core"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./npscore.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"

    # Reporting
    DEFAULT_TREND_TIMEFRAME: str = "month"

    class Config:
        env_file = ".env"
        case_sensitive = True


def get_settings(**overrides) -> Settings:
    """Build settings from the environment; keyword overrides win."""
    return Settings(**overrides)
