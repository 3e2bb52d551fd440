from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./school_portal.db"
    JWT_SECRET: str = "change-me-in-production"
    LOG_LEVEL: str = "INFO"
    SLOW_REQUEST_THRESHOLD_MS: int = 1000  # 1 segundo

    # Biblioteca / dashboards
    LOAN_PERIOD_DAYS: int = 14
    LIBRARY_RECENT_ITEMS_LIMIT: int = 10
    COUNSELING_RECENT_ITEMS_LIMIT: int = 5
    MAX_ACTIVE_ISSUES_PER_STUDENT: int = 5

    BUILTIN_ADMIN_EMAIL: str = "admin@example.com"
    BUILTIN_ADMIN_PASSWORD: str = "admin123"

    class Config:
        env_file = ".env"


settings = Settings()
