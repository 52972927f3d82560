from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List, Optional

DEFAULT_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    """
    Application configuration loaded from environment variables.
    Uses pydantic for validation and type safety.

    Every field has a fallback so the server starts with no environment
    at all. The signing secret fallback is only acceptable for local
    development; validate_runtime() refuses it in production.
    """
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 5000

    database_url: str = "sqlite:///./student_portal.db"

    # Changing the secret invalidates every issued token
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"

    # Absolute session lifetime, also used as the JWT lifetime
    session_duration_minutes: int = 30

    # Maximum gap between authenticated requests; 0 disables the idle check
    session_idle_timeout_minutes: int = 5

    session_sweep_interval_seconds: int = 30

    password_min_length: int = 8

    cookie_name: str = "auth_token"
    # None means "secure only in production"
    cookie_secure: Optional[bool] = None
    cookie_samesite: str = "strict"
    cookie_domain: Optional[str] = None

    cors_origins: List[str] = ["http://localhost:3000"]

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def secure_cookies(self) -> bool:
        if self.cookie_secure is None:
            return self.is_production
        return self.cookie_secure

    @property
    def session_duration_seconds(self) -> int:
        return self.session_duration_minutes * 60

    @property
    def idle_timeout_seconds(self) -> int:
        return self.session_idle_timeout_minutes * 60

    def validate_runtime(self) -> None:
        if self.is_production and self.jwt_secret_key == DEFAULT_JWT_SECRET:
            raise RuntimeError("JWT_SECRET_KEY must be set in production.")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance. Load once, reuse throughout application lifecycle.
    """
    return Settings()
