"""
Configuration management for wp-orm.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Library settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./wordpress.db", validation_alias="DATABASE_URL"
    )
    table_prefix: str = Field(default="wp_", validation_alias="WP_TABLE_PREFIX")
    echo_sql: bool = Field(default=False, validation_alias="ECHO_SQL")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # Content
    shortcode_max_depth: int = Field(
        default=10,
        ge=1,
        validation_alias="SHORTCODE_MAX_DEPTH",
        description="How deep nested shortcodes are expanded before the rest is left as-is.",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get library settings."""
    return settings
