from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Basic project settings
    PROJECT_NAME: str = "Table Ordering API"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Security (fixed admin gate)
    SECRET_KEY: str = Field("change-me-in-production", env="SECRET_KEY")
    ALGORITHM: str = Field("HS256", env="ALGORITHM")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60 * 8, env="ACCESS_TOKEN_EXPIRE_MINUTES")
    ADMIN_USERNAME: str = "admin"
    # passlib hash of the admin password; empty disables the admin login
    ADMIN_PASSWORD_HASH: str = ""

    # Database
    DATABASE_URL: str = Field("sqlite:///./restaurant.db", env="DATABASE_URL")

    # Optional settings
    ENVIRONMENT: str = "development"
    SUPPORT_EMAIL: str = "support@example.com"
    LOG_LEVEL: str = "INFO"
    SEED_SAMPLE_DATA: bool = False

    # Change notifications
    EVENTS_BACKEND: str = "redis"  # "redis" or "memory"
    EVENTS_CHANNEL: str = "orders_updates"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Ordering rules
    JOIN_CODE_MAX_ATTEMPTS: int = 10
    MENU_CATEGORIES: List[str] = ["Starters", "Mains", "Drinks", "Desserts"]

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
