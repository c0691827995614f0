# START OF FILE clusterseed/config.py
"""
Centralized configuration management for ClusterSeed.
All settings are loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline configuration loaded from CLUSTERSEED_* environment variables."""

    # ========================================================================
    # Workspace
    # ========================================================================
    workspace_root: str = str(Path.home() / ".clusterseed" / "workspace")

    # ========================================================================
    # SSH Configuration
    # ========================================================================
    ssh_port: int = 22
    ssh_connect_timeout: int = 10
    command_timeout: int = 300
    ssh_default_user: str = "root"
    ssh_private_key: Optional[str] = None

    # ========================================================================
    # Templates
    # ========================================================================
    # Strict: an unknown template version fails immediately.
    # Permissive: an unknown version renders as an empty template and the
    # failure surfaces later as an invalid signing request.
    strict_templates: bool = False

    # ========================================================================
    # Fan-out
    # ========================================================================
    fanout_max_workers: Optional[int] = None  # None = one worker per node
    fanout_cancel_pending: bool = False

    # ========================================================================
    # Certificate Authority
    # ========================================================================
    signing_profile: str = "kubernetes"

    # ========================================================================
    # Logging Configuration
    # ========================================================================
    log_level: str = "INFO"
    log_dir: str = "logs"
    enable_console_log: bool = True
    enable_file_log: bool = False
    enable_json_log: bool = False

    model_config = SettingsConfigDict(
        env_prefix="CLUSTERSEED_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
