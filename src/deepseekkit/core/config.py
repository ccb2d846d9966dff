"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

TransportKind = Literal["auto", "httpx", "curl"]

# YAML file read by the settings instance being built by ``Settings.load``.
_yaml_file: ContextVar[Path | None] = ContextVar("deepseekkit_yaml_file", default=None)


class StreamingConfig(BaseModel):
    transport: TransportKind = "auto"
    curl_path: str = "curl"
    # Seconds allowed between two byte arrivals; None waits forever.
    read_timeout: float | None = None
    # Grace period between SIGTERM and SIGKILL for the curl process.
    terminate_timeout: float = 2.0


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEEPSEEK_",
        env_nested_delimiter="__",
    )

    api_key: str = ""
    base_url: str = "https://api.deepseek.com/v1"
    beta_url: str = "https://api.deepseek.com/beta"
    balance_url: str = "https://api.deepseek.com/user/balance"
    default_model: str = "deepseek-chat"
    request_timeout: float = 60.0
    streaming: StreamingConfig = StreamingConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Constructor arguments, then DEEPSEEK_* variables, then the YAML file.
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]
        yaml_file = _yaml_file.get()
        if yaml_file is not None:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file))
        sources.append(file_secret_settings)
        return tuple(sources)

    @classmethod
    def load(cls, config_path: Path | None = None, **values: Any) -> Settings:
        """Load settings from YAML file, with env vars and ``values`` on top."""
        token = _yaml_file.set(config_path if config_path and config_path.exists() else None)
        try:
            return cls(**values)
        finally:
            _yaml_file.reset(token)


def get_project_root() -> Path:
    """Walk up from CWD to find pyproject.toml, or fall back to CWD."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return current


def load_settings(config_path: Path | None = None, **values: Any) -> Settings:
    """Load settings from an explicit file or the project's config/settings.yaml."""
    if config_path is None:
        config_path = get_project_root() / "config" / "settings.yaml"
    return Settings.load(config_path, **values)
