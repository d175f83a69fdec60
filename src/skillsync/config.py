"""Configuration loading for skillsync.

Settings come from a YAML file (``~/.skillsync/config.yaml`` unless
``SKILLSYNC_CONFIG`` or an explicit path says otherwise) layered over
``SKILLSYNC_*`` environment variables and built-in defaults.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from skillsync.core.logging.logger import get_logger
from skillsync.errors import ConfigError

logger = get_logger(__name__)

CONFIG_ENV_VAR = "SKILLSYNC_CONFIG"
MAX_CONFIG_BYTES = 1_048_576


def expand_path(value: str | Path) -> Path:
    """Expand ``~`` and environment variables in a configured path."""
    return Path(os.path.expandvars(os.path.expanduser(str(value))))


def default_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return expand_path(override)
    return Path.home() / ".skillsync" / "config.yaml"


class AgentSettings(BaseModel):
    """Where one agent expects to find its skills."""

    enabled: bool = True
    global_path: Path
    workspace_path: Path

    model_config = ConfigDict(extra="forbid")

    @field_validator("global_path", "workspace_path", mode="before")
    @classmethod
    def _expand_paths(cls, value: Any) -> Any:
        if isinstance(value, (str, Path)):
            return expand_path(value)
        return value


def default_agents() -> dict[str, AgentSettings]:
    return {
        "claude-code": AgentSettings(
            global_path="~/.claude/skills",
            workspace_path=".claude/skills",
        ),
        "windsurf": AgentSettings(
            global_path="~/.codeium/windsurf/skills",
            workspace_path=".windsurf/skills",
        ),
        "opencode": AgentSettings(
            global_path="~/.config/opencode/skill",
            workspace_path=".opencode/skill",
        ),
        "kilocode": AgentSettings(
            global_path="~/.kilocode/skills",
            workspace_path=".kilocode/skills",
        ),
        "amp": AgentSettings(
            global_path="~/.config/agents/skills",
            workspace_path=".agents/skills",
        ),
    }


class Settings(BaseSettings):
    repo_root: Path = Path("~/.skillsync/repo")
    clone_depth: int = Field(default=1, ge=1)
    git_timeout: float | None = 300.0
    agents: dict[str, AgentSettings] = Field(default_factory=default_agents)

    model_config = SettingsConfigDict(
        env_prefix="SKILLSYNC_",
        extra="forbid",
        validate_default=True,
    )

    @field_validator("repo_root", mode="after")
    @classmethod
    def _expand_repo_root(cls, value: Path) -> Path:
        return expand_path(value)


def _read_config_payload(path: Path) -> dict[str, Any]:
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise ConfigError(f"failed to read config file: {exc}", path) from exc
    if size > MAX_CONFIG_BYTES:
        raise ConfigError(
            f"file is {size} bytes (maximum {MAX_CONFIG_BYTES} bytes)",
            path,
        )

    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to read config file: {exc}", path) from exc

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML: {exc}", path) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping", path)
    return data


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from ``config_path`` (or the default location).

    A missing file is not an error: the built-in agent table is used.
    """
    path = expand_path(config_path) if config_path else default_config_path()
    payload: dict[str, Any] = {}
    if path.exists():
        payload = _read_config_payload(path)
        logger.debug("Loaded configuration", data={"path": str(path)})
    else:
        logger.debug("No configuration file, using defaults", data={"path": str(path)})

    try:
        return Settings(**payload)
    except PydanticValidationError as exc:
        raise ConfigError(str(exc), path) from exc
