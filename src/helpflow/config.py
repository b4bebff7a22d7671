from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .models import Pace, Placement


class UserPreferences(BaseModel):
    show_on_hover: bool = False
    show_on_focus: bool = True
    auto_hide_delay_ms: int = Field(default=5000, description="0 disables auto-hide")
    preferred_placement: Placement = Placement.FLOATING

    @field_validator("auto_hide_delay_ms")
    def validate_delay(cls, v):
        if v < 0:
            raise ValueError("auto_hide_delay_ms must be >= 0")
        return v


class SkillThresholds(BaseModel):
    """Completion-count / average-time cut-offs for skill inference."""

    expert_min_completed: int = 5
    expert_max_avg_ms: float = 30_000
    advanced_min_completed: int = 3
    advanced_max_avg_ms: float = 60_000
    intermediate_min_completed: int = 1

    @model_validator(mode="after")
    def validate_ordering(self):
        if not (
            self.expert_min_completed >= self.advanced_min_completed >= self.intermediate_min_completed >= 0
        ):
            raise ValueError("Completion thresholds must satisfy expert >= advanced >= intermediate >= 0")
        if self.expert_max_avg_ms > self.advanced_max_avg_ms:
            raise ValueError("expert_max_avg_ms must not exceed advanced_max_avg_ms")
        return self


class KeyBindings(BaseModel):
    show_help: str = "f1"
    toggle_help: str = "ctrl+shift+h"
    hide_help: str = "escape"
    tutorial_next: str = "right"
    tutorial_previous: str = "left"
    tutorial_play_pause: str = "space"
    tutorial_exit: str = "escape"


class GatewayConfig(BaseModel):
    enabled: bool = False
    url: Optional[str] = Field(default=None, description="Content-generation endpoint")
    timeout: float = Field(default=10.0, description="Request timeout in seconds")
    api_key: Optional[str] = None

    @field_validator("timeout")
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v


class TutorialConfig(BaseModel):
    pace: Pace = Pace.NORMAL
    default_step_duration_sec: float = 30.0

    @field_validator("default_step_duration_sec")
    def validate_duration(cls, v):
        if v <= 0:
            raise ValueError("default_step_duration_sec must be positive")
        return v


class DisclosureConfig(BaseModel):
    max_initial_levels: int = 2
    adapt_to_user_level: bool = True

    @field_validator("max_initial_levels")
    def validate_max(cls, v):
        if v < 1:
            raise ValueError("max_initial_levels must be at least 1")
        return v


class HelpflowConfig(BaseModel):
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    skill: SkillThresholds = Field(default_factory=SkillThresholds)
    keys: KeyBindings = Field(default_factory=KeyBindings)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    tutorial: TutorialConfig = Field(default_factory=TutorialConfig)
    disclosure: DisclosureConfig = Field(default_factory=DisclosureConfig)

    @classmethod
    def from_file(cls, path: Path) -> "HelpflowConfig":
        """Load configuration from a YAML file."""
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def save_to_file(self, path: Path) -> Path:
        """Save configuration to a YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, indent=2)
        return path


__all__ = [
    "UserPreferences",
    "SkillThresholds",
    "KeyBindings",
    "GatewayConfig",
    "TutorialConfig",
    "DisclosureConfig",
    "HelpflowConfig",
]
