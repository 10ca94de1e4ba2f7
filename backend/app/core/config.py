from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./printshop.db"

    # CORS origins for the admin dashboard
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"

    # Reporting defaults
    DEFAULT_TIME_RANGE: str = "12months"
    TOP_PRODUCTS_LIMIT: int = 10


settings = Settings()
