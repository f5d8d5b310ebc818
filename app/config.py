# app/config.py
import os
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === Algemene app settings ===
    app_env: str = "local"  # local | development | production

    # === Database (definition store + audit log) ===
    database_url: str = "sqlite:///./wrapflow.db"

    # === Logging ===
    log_level: str = "INFO"

    # === Health ===
    health_key: Optional[str] = Field(None, description="Required Authorization header value for /health")

    # === Outbound HTTP stages ===
    http_default_timeout_ms: int = 10000
    http_default_retries: int = 0
    http_backoff_step_ms: int = 200
    http_backoff_cap_ms: int = 2000
    # Upstream TLS certificates are NOT validated unless this is switched on.
    upstream_tls_verify: bool = False

    # === Engine ===
    max_stage_transitions: int = 1000
    max_stages_per_pipeline: int = 200
    audit_enabled: bool = True

    # === Metrics ===
    metrics_enabled: bool = True

    # === Pydantic Settings config ===
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton Settings instance met simpele env-overrides."""
    s = Settings()

    env = os.getenv("ENVIRONMENT", s.app_env).lower()
    if env == "production":
        s.log_level = "WARNING"
    elif env == "development":
        s.log_level = "DEBUG"

    return s


# Module-level export zodat bestaande imports blijven werken:
# from app.config import settings
settings = get_settings()
