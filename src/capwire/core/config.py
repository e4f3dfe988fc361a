"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files
    - Environment variables (CAPWIRE_* prefix)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - RegistryConfig: Default version range and member exclusions
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from capwire.core.result import ConfigurationError
from capwire.core.versioning import is_valid_range

CONFIG_ENV_VAR = "CAPWIRE_CONFIG"


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class RegistryConfig(BaseModel):
    """Registry defaults applied when callers do not supply their own."""

    default_version: str = Field(
        default="*",
        description="Version range used when a request does not name one.",
    )
    exclude_exact: list[str] = Field(
        default_factory=lambda: ["constructor"],
        description="Module member names never exposed for dispatch.",
    )
    exclude_prefix: list[str] = Field(
        default_factory=lambda: ["_"],
        description="Module member name prefixes never exposed for dispatch.",
    )
    exclude_pattern: list[str] = Field(
        default_factory=list,
        description="Regular expressions; matching module member names are not exposed.",
    )

    @field_validator("default_version")
    @classmethod
    def ensure_valid_range(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("default_version must be a non-empty version range")
        if not is_valid_range(v):
            raise ValueError(f"default_version {v!r} is not a version range")
        return v.strip()

    @field_validator("exclude_pattern")
    @classmethod
    def ensure_patterns_compile(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"exclude_pattern {pattern!r} is not a regular expression: {exc}") from exc
        return v


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Application-wide configuration with nested sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="CAPWIRE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    log_level: str = Field(default="INFO", description="Log level for capwire output.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Ensure environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = config_path or env_vars.get(CONFIG_ENV_VAR) or (Path.home() / ".capwire.toml")
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigurationError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    For nested models, detects vars like CAPWIRE_REGISTRY__DEFAULT_VERSION.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    for field in RegistryConfig.model_fields:
        env_key = f"{prefix}registry{delimiter}{field}".upper()
        if env_key in env_vars:
            overrides.add(f"registry.{field}")

    if f"{prefix}log_level".upper() in env_vars:
        overrides.add("log_level")

    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns default config + error message.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except ConfigurationError as exc:
        error = str(exc)

    context_manager = (
        patch.dict(os.environ, env_vars, clear=False) if env is not None else nullcontext()
    )

    try:
        with context_manager:
            config = AppConfig(**file_data)
    except ValidationError as exc:
        error = str(exc)
        config = AppConfig()

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result
