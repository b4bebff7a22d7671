"""Environment-based configuration using pydantic-settings.

Settings are read from ``HELPFLOW_*`` environment variables and an optional
``.env`` file, and are merged over the YAML :class:`HelpflowConfig` used at
runtime.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import HelpflowConfig


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="HELPFLOW_", case_sensitive=False, extra="ignore"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Application log level")
    log_format: str = Field(default="text", description="Log format: json or text")

    config_path: Optional[str] = Field(default=None, description="YAML config file")

    # Content-generation gateway
    gateway_enabled: Optional[bool] = None
    gateway_url: Optional[str] = None
    gateway_timeout: Optional[float] = None
    gateway_api_key: Optional[str] = None

    def load_config(self) -> HelpflowConfig:
        """Load the YAML config (if any) and apply environment overrides."""
        base: Optional[HelpflowConfig] = None
        if self.config_path and Path(self.config_path).exists():
            base = HelpflowConfig.from_file(Path(self.config_path))
        elif Path("helpflow.yaml").exists():
            base = HelpflowConfig.from_file(Path("helpflow.yaml"))
        return self.to_runtime_config(base)

    def to_runtime_config(self, base: Optional[HelpflowConfig] = None) -> HelpflowConfig:
        """Merge environment settings into a runtime config.

        Environment variables take precedence over values loaded from YAML.
        """
        if base is None:
            base = HelpflowConfig()

        updates = {}
        if self.gateway_enabled is not None:
            updates["enabled"] = self.gateway_enabled
        if self.gateway_url is not None:
            updates["url"] = self.gateway_url
            # an endpoint without an explicit toggle means "use it"
            if self.gateway_enabled is None:
                updates["enabled"] = True
        if self.gateway_timeout is not None:
            updates["timeout"] = self.gateway_timeout
        if self.gateway_api_key is not None:
            updates["api_key"] = self.gateway_api_key

        if updates:
            gateway = base.gateway.model_validate({**base.gateway.model_dump(), **updates})
            base = base.model_copy(update={"gateway": gateway})
        return base


__all__ = ["AppSettings"]
