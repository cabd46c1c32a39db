"""
Runtime configuration for Notex.

Defaults live on the Settings model; any field can be overridden with a
NOTEX_<FIELD> environment variable (e.g. NOTEX_STORAGE_ROOT=/data/notes).
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ENV_PREFIX = "NOTEX_"


class Settings(BaseSettings):
    """Storage location, record suffixes and autosave timing"""
    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, case_sensitive=False)

    storage_root: Path = Field(default_factory=lambda: Path.home() / ".notex" / "Notes")
    note_suffix: str = ".json"
    canvas_suffix: str = ".canvas.json"
    throttle_interval: float = Field(default=0.5, gt=0)
    autosave_delay: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"
    leaf_placeholder: str = "Untitled"
    folder_placeholder: str = "New Folder"
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("storage_root")
    @classmethod
    def expand_root(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("note_suffix", "canvas_suffix")
    @classmethod
    def suffix_has_dot(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError(f"suffix must start with '.': {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
