from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str = "sqlite+pysqlite:///./storefront.db"
    JWT_ISS: str = "storefront"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"
    TENANT_HEADER: str = "x-tenant-slug"
    ORDER_RATE_LIMIT: int = 20
    ORDER_RATE_WINDOW_SEC: int = 60
    REDIS_URL: str | None = None
    ORDER_NUMBER_PREFIX: str = "CMD"
    STOCK_ALERT_WEBHOOK_URL: str | None = None
    STOCK_ALERT_COOLDOWN_MIN: int = 60
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
