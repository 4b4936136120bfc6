"""
Core configuration for Quizcraft Backend
Quiz assembly, grading and resumable quiz sessions
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application Settings
    APP_NAME: str = "Quizcraft"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Quiz assembly and grading engine"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=False)

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Quizcraft Backend"

    # Database
    DATABASE_URL: Optional[str] = Field(default=None)
    DB_ECHO: bool = Field(default=False)

    # Redis (autosave store)
    REDIS_URL: Optional[str] = Field(default=None)
    REDIS_HOST: str = Field(default="localhost")
    REDIS_PORT: int = Field(default=6379)
    REDIS_DB: int = Field(default=0)

    # Quiz sessions
    AUTOSAVE_KEY_PREFIX: str = Field(default="quiz_autosave_")
    AUTOSAVE_DEBOUNCE_SECONDS: float = Field(default=1.0)
    AUTOSAVE_TTL_SECONDS: int = Field(default=7 * 24 * 3600)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    LOG_FILE: str = Field(default="logs/quizcraft.log")
    LOG_MAX_BYTES: int = Field(default=10 * 1024 * 1024)
    LOG_BACKUP_COUNT: int = Field(default=5)
    LOG_TO_FILE: bool = Field(default=False)

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)

    # CORS
    BACKEND_CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost:5173")

    class Config:
        env_file = ".env"
        case_sensitive = True

    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def get_database_url(self) -> str:
        """Get database URL with proper formatting"""
        if self.DATABASE_URL:
            db_url = self.DATABASE_URL
            if db_url.startswith("postgres://"):
                db_url = db_url.replace("postgres://", "postgresql://", 1)
            return db_url

        # Default for development
        return "sqlite:///./quizcraft.db"

    def get_redis_url(self) -> Optional[str]:
        """Get Redis URL"""
        if self.REDIS_URL:
            return self.REDIS_URL
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def get_cors_origins(self) -> list[str]:
        """Get CORS origins as list"""
        if self.BACKEND_CORS_ORIGINS:
            return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",")]
        return ["http://localhost:3000"]


settings = Settings()
