"""Configuration models for Blockwriter."""

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator, model_validator

from blockwriter.models.goal import DEFAULT_TARGET_WORD_COUNT


class EditorConfig(BaseModel):
    """Configuration for the chapter editor."""

    autosave_delay_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Quiet period after the last edit before an autosave fires"
    )

    autosave_enabled: bool = Field(
        default=True,
        description="Whether edits schedule autosaves at all"
    )

    default_goal: int = Field(
        default=DEFAULT_TARGET_WORD_COUNT,
        ge=1,
        description="Initial word count goal for new editing sessions"
    )

    focus_presets: List[int] = Field(
        default_factory=lambda: [15, 25, 30, 45, 60],
        min_length=1,
        description="Focus timer durations offered to the user (minutes)"
    )

    default_focus_minutes: int = Field(
        default=25,
        description="Focus timer duration selected by default (minutes)"
    )

    @field_validator("focus_presets")
    @classmethod
    def validate_presets(cls, v: List[int]) -> List[int]:
        """Presets must be positive and are kept sorted."""
        if any(minutes <= 0 for minutes in v):
            raise ValueError(f"Focus presets must be positive minutes: {v}")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_default_focus(self) -> "EditorConfig":
        if self.default_focus_minutes not in self.focus_presets:
            raise ValueError(
                f"default_focus_minutes ({self.default_focus_minutes}) "
                f"must be one of focus_presets {self.focus_presets}"
            )
        return self

    model_config = {"frozen": True}


class StorageConfig(BaseModel):
    """Configuration for where chapters are persisted."""

    backend: Literal["local", "supabase"] = Field(
        default="local",
        description="Chapter store: device-local JSON files or Supabase"
    )

    local_path: str = Field(
        default="~/.local/share/blockwriter/chapters",
        description="Directory for device-local chapter files"
    )

    @property
    def local_dir(self) -> Path:
        return Path(self.local_path).expanduser()

    model_config = {"frozen": True}


class SupabaseConfig(BaseModel):
    """Configuration for the Supabase (PostgREST) backend."""

    url: HttpUrl = Field(
        ...,
        description="Supabase project URL (e.g., https://xyz.supabase.co)"
    )

    anon_key: str = Field(
        ...,
        description="Project anon key, sent as the apikey header"
    )

    access_token: Optional[str] = Field(
        default=None,
        description="User session token; falls back to the anon key when unset"
    )

    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request timeout"
    )

    model_config = {"frozen": True}


class Config(BaseModel):
    """Root configuration for Blockwriter."""

    editor: EditorConfig = Field(default_factory=EditorConfig, description="Editor settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage settings")
    supabase: Optional[SupabaseConfig] = Field(default=None, description="Supabase settings")

    @model_validator(mode="after")
    def validate_backend(self) -> "Config":
        if self.storage.backend == "supabase" and self.supabase is None:
            raise ValueError(
                "storage.backend is 'supabase' but no supabase section is configured\n"
                "Add supabase.url and supabase.anon_key to config.yaml"
            )
        return self

    model_config = {"frozen": True}
