from pydantic_settings import BaseSettings
from pathlib import Path


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"  # development | test | staging | production
    APP_NAME: str = "FocusFlow"
    SECRET_KEY: str = "change-me-in-production"
    DATABASE_URL: str = "sqlite:///data/focusflow.db"
    DATA_DIR: Path = Path("data")
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 72
    AUTH_COOKIE_NAME: str = "focusflow_session"
    AUTH_COOKIE_SECURE: bool = False
    AUTH_COOKIE_HTTPONLY: bool = True
    AUTH_COOKIE_SAMESITE: str = "lax"  # strict | lax | none
    AUTH_COOKIE_DOMAIN: str | None = None
    AUTH_COOKIE_PATH: str = "/"
    SECURITY_HEADERS_ENABLED: bool = True
    SECURITY_CSP: str = (
        "default-src 'self'; "
        "img-src 'self' data: blob:; "
        "style-src 'self' 'unsafe-inline'; "
        "script-src 'self'; "
        "connect-src 'self' https:; "
        "frame-ancestors 'none'; "
        "base-uri 'self';"
    )
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    STATS_DEFAULT_WINDOW_DAYS: int = 14
    STATS_MIN_WINDOW_DAYS: int = 7
    STATS_MAX_WINDOW_DAYS: int = 30
    # Off by default: counting items only from their creation day changes historical percentages.
    STATS_COUNT_FROM_CREATION: bool = False
    XP_TASK_COMPLETED: int = 10
    XP_HABIT_LOGGED: int = 20
    XP_ROUTINE_LOGGED: int = 5
    AI_PROVIDER: str = "google"
    AI_API_KEY: str | None = None
    AI_MODEL: str | None = None
    AI_TIMEOUT_SECONDS: int = 60

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production_like(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"production", "prod", "staging"}

    def validate_security_configuration(self) -> None:
        if not self.is_production_like:
            return

        errors: list[str] = []
        if self.SECRET_KEY == "change-me-in-production":
            errors.append("SECRET_KEY must be changed from the default value")
        if len((self.SECRET_KEY or "").strip()) < 16:
            errors.append("SECRET_KEY must be at least 16 characters")
        if not self.AUTH_COOKIE_SECURE:
            errors.append("AUTH_COOKIE_SECURE must be true in production-like environments")
        if (self.AUTH_COOKIE_SAMESITE or "").strip().lower() == "none" and not self.AUTH_COOKIE_SECURE:
            errors.append("AUTH_COOKIE_SAMESITE=none requires AUTH_COOKIE_SECURE=true")
        if errors:
            joined = "; ".join(errors)
            raise RuntimeError(f"Insecure production configuration: {joined}")

    def validate_stats_configuration(self) -> None:
        low, high = self.STATS_MIN_WINDOW_DAYS, self.STATS_MAX_WINDOW_DAYS
        if low < 1 or high < low:
            raise RuntimeError(f"Invalid stats window bounds: {low}..{high}")
        if not low <= self.STATS_DEFAULT_WINDOW_DAYS <= high:
            raise RuntimeError(
                f"STATS_DEFAULT_WINDOW_DAYS={self.STATS_DEFAULT_WINDOW_DAYS} is outside {low}..{high}"
            )


settings = Settings()
settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
