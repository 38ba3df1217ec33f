# tasktracker/config.py
"""Runtime settings for the task tracker service."""

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_DB_PATH = Path(__file__).parent / "data.db"
DEFAULT_JWT_SECRET = "default_secret"


class Settings(BaseModel):
    """Configuration built once at startup and handed to the app factory."""

    database_url: str = f"sqlite:///{DEFAULT_DB_PATH}"
    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_minutes: int = Field(default=60, ge=1)
    environment: str = "development"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    expiry_sweep_interval: float = Field(default=3600.0, ge=0)
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        origins = os.getenv("CORS_ORIGINS")
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", defaults.jwt_algorithm),
            token_ttl_minutes=int(os.getenv("JWT_EXPIRES_MINUTES", defaults.token_ttl_minutes)),
            environment=os.getenv("APP_ENV", defaults.environment),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else defaults.cors_origins
            ),
            expiry_sweep_interval=float(
                os.getenv("EXPIRY_SWEEP_INTERVAL_SECONDS", defaults.expiry_sweep_interval)
            ),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
        )
