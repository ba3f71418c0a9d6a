# backend/ecotrack/core/settings.py
# Configuration applicative chargée depuis l’environnement / `.env` (pydantic-settings).

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # === App settings ===
    app_name: str = "EcoTrack"
    environment: str = "development"  # or "production"
    api_version: str = "0.1.0"
    cors_origins: list[str] = ["http://localhost:5173"]

    # === MongoDB ===
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "ecotrack"
    # Borne côté client : sélection serveur + socket (ms)
    mongodb_timeout_ms: int = 5000

    # === JWT ===
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60 * 24  # 1 day

    # === LOGS ===
    log_dir: str = "logs"
    log_retention_days: int = 30

    # === HTTP ===
    max_body_kb: int = 256
    default_page_size: int = 20
    max_page_size: int = 50

    # === PARTICIPATION ===
    participation_max_attempts: int = 5
    slug_max_attempts: int = 20

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def max_body_bytes(self) -> int:
        return self.max_body_kb * 1024


@lru_cache
def get_settings() -> Settings:
    """Instance unique des settings (cache)."""
    return Settings()
