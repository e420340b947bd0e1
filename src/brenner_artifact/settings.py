"""
Configuration settings for artifact compilation.

Environment variables:
    BRENNER_DELTA_FENCE_TAG          Fence language marking delta blocks (default: delta)
    BRENNER_MAX_TRANSCRIPT_SECTION   Highest valid §n anchor (default: 236)
    BRENNER_HYPOTHESIS_LIMIT         Maximum active hypotheses accepted by merge
    BRENNER_STALE_AFTER_DAYS         Lint staleness threshold in days
    BRENNER_DETECT_FIELD_CONFLICTS   Warn on same-field edits by different agents
    BRENNER_IMPLICIT_ACK             Count any reply as an acknowledgement
    BRENNER_LOG_LEVEL                CLI log level
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Artifact compilation settings."""

    model_config = SettingsConfigDict(env_prefix="BRENNER_", env_file=".env", extra="ignore")

    # Extraction
    delta_fence_tag: str = "delta"

    # Merge
    hypothesis_limit: int = 6
    detect_field_conflicts: bool = True

    # Lint
    max_transcript_section: int = 236
    stale_after_days: int = 30

    # Thread status
    expected_roles: list[str] = [
        "hypothesis_generator",
        "test_designer",
        "adversarial_critic",
    ]
    implicit_ack: bool = False

    # CLI
    log_level: str = "WARNING"


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached instance so the next call re-reads the environment."""
    global _settings
    _settings = None
