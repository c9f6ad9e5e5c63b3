from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite+aiosqlite:///./fleet_usage.db"

    REDIS_URL: str = "redis://localhost:6379/0"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 24 hours

    IDEMPOTENCY_TTL: int = 300  # 5 minutes

    STORE_TIMEOUT_SECONDS: float = 5.0
    COST_DECIMALS: int = 2

    API_TITLE: str = "Fleet Usage Service"
    API_DESCRIPTION: str = "Vehicle fleet usage: trips, odometer tracking, fuel costs and consumption reports"
    API_VERSION: str = "1.0.0"

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
