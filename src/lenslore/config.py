"""Configuration management for LensLore."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

# Checked in order by load_config(); the first non-empty value wins.
API_KEY_ENV_VARS = ("LENSLORE_API_KEY", "API_KEY", "GEMINI_API_KEY")


class AppConfig(BaseModel):
    """Application configuration."""

    name: str = "lenslore"
    mode: Literal["production", "development"] = "development"
    log_level: str = "INFO"


class GenAIConfig(BaseModel):
    """Generative AI backend configuration."""

    api_key: str | None = None
    vision_model: str = "gemini-3-pro-preview"
    details_model: str = "gemini-2.5-flash"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    voice: str = "Aoede"
    vision_timeout_seconds: float = 60.0
    details_timeout_seconds: float = 60.0
    narration_timeout_seconds: float = 90.0


class NarrationConfig(BaseModel):
    """Narration text configuration."""

    max_chars: int = 500
    ellipsis: str = "..."


class AudioConfig(BaseModel):
    """Audio decode and playback configuration."""

    sample_rate: int = 24000
    channels: int = 1
    output_device: str | int | None = None


class Config(BaseSettings):
    """Main configuration for LensLore."""

    model_config = SettingsConfigDict(
        env_prefix="LENSLORE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app: AppConfig = Field(default_factory=AppConfig)
    genai: GenAIConfig = Field(default_factory=GenAIConfig)
    narration: NarrationConfig = Field(default_factory=NarrationConfig)
    audio: AudioConfig = Field(default_factory=AudioConfig)

    # Canned providers and silent playback, no network
    mock_mode: bool = False

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # LENSLORE_* variables win over values read from a config file,
        # which reach the model as init kwargs. Nested keys are merged.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @classmethod
    def from_yaml(cls, path: Path | str) -> Config:
        """Load configuration from YAML file.

        ``LENSLORE_*`` environment variables override values from the file.
        """
        path = Path(path)
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    def masked(self) -> dict[str, Any]:
        """Dump configuration with the API key hidden."""
        data = self.model_dump()
        if data["genai"].get("api_key"):
            data["genai"]["api_key"] = "***"
        return data


def load_config(
    config_path: Path | str | None = None,
    env_override: bool = True,
) -> Config:
    """Load configuration from file and environment.

    Args:
        config_path: Path to config file. If None, searches standard locations.
        env_override: Whether to allow environment variables to override config.

    Returns:
        Loaded configuration.
    """
    search_paths = [
        Path.home() / ".config" / "lenslore" / "config.yaml",
        Path("lenslore.yaml"),
        Path("configs/lenslore.yaml"),
    ]

    if config_path:
        search_paths.insert(0, Path(config_path))

    config_file: Path | None = None
    for path in search_paths:
        if path.exists():
            config_file = path
            break

    if config_file:
        config = Config.from_yaml(config_file)
    else:
        config = Config()

    if env_override:
        for var in API_KEY_ENV_VARS:
            api_key = os.environ.get(var)
            if api_key:
                config.genai.api_key = api_key
                break

        if os.environ.get("LENSLORE_MOCK_MODE", "").lower() in ("1", "true", "yes"):
            config.mock_mode = True

    return config
