"""Application configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from safecampus.core import sos_policies


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = "safecampus"
    debug: bool = False
    database_url: str = "sqlite:///./safecampus.db"

    # JWT
    jwt_secret: str = "change-me-in-production-use-openssl-rand-hex-32"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Realtime engine
    sos_cooldown_seconds: float = sos_policies.COOLDOWN_SECONDS
    notification_ttl_seconds: float = sos_policies.NOTIFICATION_TTL_SECONDS
    recent_alerts_limit: int = sos_policies.RECENT_ALERTS_LIMIT
    zone_radius_km: float = 0.5

    # Sessions with no HTTP request and no open websocket for this long are closed
    session_idle_ttl_seconds: float = 300.0
    session_sweep_interval_seconds: float = 30.0

    # Used when the client reports that geolocation was denied
    default_latitude: float = 27.4924
    default_longitude: float = 77.6737

    # Rate limits (per key, sliding 60s window)
    login_attempts_per_minute: int = 5
    incident_reports_per_minute: int = 10


settings = Settings()
