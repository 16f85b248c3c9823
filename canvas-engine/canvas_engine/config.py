"""Application configuration using Pydantic Settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CANVAS_",
        case_sensitive=False,
    )

    # App settings
    app_name: str = "Canvas Graph Engine"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # ==========================================================================
    # LAYOUT
    # Fallback geometry used when a node has no explicit or measured size
    # ==========================================================================

    # Height of a collapsed node that has not been measured yet
    collapsed_header_height: float = 40
    default_node_height: float = 100
    default_node_width: float = 200

    # Seeded on expand when a node has no explicit height
    expanded_default_height: float = 200

    # Height a standard node shrinks to when collapsed
    collapsed_height: float = 50
    # Heights at or below this are not remembered as the expanded height
    collapse_memory_threshold: float = 60

    # ==========================================================================
    # INTERACTION
    # ==========================================================================

    dock_threshold: float = 50
    undock_threshold: float = 50
    dock_min_overlap_ratio: float = 0.3
    group_overlap_ratio: float = 0.2

    # ==========================================================================
    # MUTATION
    # ==========================================================================

    duplicate_offset: float = 20
    paste_offset: float = 50
    schema_node_gap: float = 50
    schema_node_fallback_height: float = 200


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
