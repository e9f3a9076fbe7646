"""Server configuration."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from promethean.attribution.schema import AttributionMode, SessionLinkingPolicy


class Settings(BaseSettings):
    """Server settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database connection
    database_url: str = "postgresql://localhost/promethean"

    # Server
    port: int = 8007
    debug: bool = False
    log_level: str = "INFO"

    # Default linking policy (requests may override)
    default_exclude_in_call_dials: bool = True
    default_exclude_rep_dials: bool = True
    default_attribution_mode: AttributionMode = "primary"
    default_time_window_days: int = 14
    default_same_call_window_minutes: int = 30

    # Real-time dial claiming
    claim_window_hours: int = 24
    replay_ttl_hours: int = 24

    def default_policy(self) -> SessionLinkingPolicy:
        """Linking policy used when a request does not supply one."""
        return SessionLinkingPolicy(
            exclude_in_call_dials=self.default_exclude_in_call_dials,
            exclude_rep_dials=self.default_exclude_rep_dials,
            attribution_mode=self.default_attribution_mode,
            time_window_days=self.default_time_window_days,
            same_call_window_minutes=self.default_same_call_window_minutes,
        )


settings = Settings()
