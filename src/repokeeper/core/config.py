"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files
    - Environment variables (REPOKEEPER_* prefix)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_ENV_VAR = "REPOKEEPER_CONFIG"

# GitHub serves at most 100 commits per page and the window is never paginated.
MAX_WINDOW_SIZE = 100


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded or validated."""


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class GitHubConfig(BaseModel):
    """GitHub REST API access."""

    api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL.")
    token: SecretStr | None = Field(
        default=None, description="Personal access token with repo scope."
    )
    user_agent: str = Field(
        default="GitHub-Repo-Cleaner", description="User-Agent header sent with every request."
    )
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds.")

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class HistoryConfig(BaseModel):
    """History rewrite behaviour."""

    window_size: int = Field(
        default=50,
        ge=1,
        le=MAX_WINDOW_SIZE,
        description="How many commits back from the branch tip a fix may reach.",
    )
    rewrite_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Deadline in seconds for replaying the rewritten chain.",
    )


class UserConfig(BaseModel):
    """User preferences."""

    log_level: str = Field(default="INFO", description="Log level for repokeeper output.")
    dry_run: bool = Field(
        default=False, description="If true, plans rewrites without creating commits or moving refs."
    )
    confirm: bool = Field(
        default=True, description="Ask for confirmation before force-updating a branch."
    )


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Top-level settings: file values, overridden by ``REPOKEEPER_<GROUP>__<FIELD>``."""

    model_config = SettingsConfigDict(
        env_prefix="REPOKEEPER_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    user: UserConfig = Field(default_factory=UserConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; env has to win over them.
        return (env_settings, init_settings)


def default_config_path(env_vars: Mapping[str, str]) -> Path:
    override = env_vars.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else Path.home() / ".repokeeper.toml"


def _read_config_file(path: Path) -> dict[str, Any] | None:
    """Parse ``path`` as JSON or TOML; ``None`` when the file does not exist."""
    if not path.is_file():
        return None

    parse = json.loads if path.suffix.lower() == ".json" else tomllib.loads
    try:
        data = parse(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")
    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Dotted names of settings set through the environment, e.g. ``github.token``."""
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    present = {key.upper() for key in env_vars}

    overrides: set[str] = set()
    for group, group_field in AppConfig.model_fields.items():
        model_cls = group_field.annotation
        if not (isinstance(model_cls, type) and issubclass(model_cls, BaseModel)):
            continue
        for name in model_cls.model_fields:
            if f"{prefix}{group}{delimiter}{name}".upper() in present:
                overrides.add(f"{group}.{name}")
    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """Load settings without ever raising.

    A broken file puts the CLI in safe mode: its contents are ignored, the
    environment still applies, and ``ConfigLoadResult.error`` says what went
    wrong. Invalid values fall back to built-in defaults altogether.
    ``env`` adds variables on top of ``os.environ`` for this call only.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    path = Path(config_path).expanduser() if config_path else default_config_path(env_vars)
    meta = ConfigLoadResult(
        path=path, file_loaded=False, env_overrides=_detect_env_overrides(env_vars)
    )

    file_data: dict[str, Any] | None = None
    try:
        file_data = _read_config_file(path)
    except ConfigError as exc:
        meta.error = str(exc)

    meta.file_loaded = file_data is not None
    scoped_env = patch.dict(os.environ, dict(env)) if env is not None else nullcontext()
    try:
        with scoped_env:
            config = AppConfig(**(file_data or {}))
    except ValidationError as exc:
        meta.error = str(exc)
        return AppConfig.model_construct(), meta

    return config, meta
