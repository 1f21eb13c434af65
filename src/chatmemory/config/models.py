# src/chatmemory/config/models.py
"""
Pydantic models for chatmemory configuration.

The configuration hierarchy:
    MemoryConfig (root, TOML section ``[memory]``)
    ├── StorageConfig   - Conversation store backend selection
    └── LoggingConfig   - Handlers applied by ConversationMemoryManager.create

Configuration is loaded and merged in order:
    1. Model defaults
    2. TOML config file (``[memory]`` section)
    3. Explicit configuration dictionary
    4. Environment variables (``CHATMEMORY_<FIELD>``, nested keys joined
       with double underscores, e.g. ``CHATMEMORY_STORAGE__PATH``)
    5. Runtime overrides

Usage:
    >>> from chatmemory.config import load_memory_config
    >>> config = load_memory_config()
    >>> config.recent_message_limit
    10
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "CHATMEMORY_"
ENV_CONFIG_PATH = "CHATMEMORY_CONFIG_PATH"


class StorageConfig(BaseModel):
    """
    Conversation store configuration.

    ``type`` selects the backend; ``path`` is only used by the SQLite store.
    """

    type: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Store backend: 'memory' (process-local) or 'sqlite' (aiosqlite file).",
    )
    path: str = Field(
        default="~/.local/share/chatmemory/conversations.db",
        description="SQLite database file. Tilde expansion is applied.",
    )

    @field_validator("type", mode="before")
    @classmethod
    def lower_type(cls, v: Any) -> Any:
        return v.lower() if isinstance(v, str) else v


class LoggingConfig(BaseModel):
    """
    Logging setup applied by ``ConversationMemoryManager.create``.

    Nothing is configured unless ``enabled`` is true; embedding applications
    that own their logging leave it off.
    """

    enabled: bool = Field(default=False, description="Configure handlers when the manager is created")
    app_name: str = Field(default="chatmemory", description="Used in log file names")
    console_enabled: bool = Field(
        default=False, description="Show all records on stderr; otherwise only display-marked ones"
    )
    console_level: str = Field(default="WARNING")
    display_min_level: str = Field(default="INFO")
    file_enabled: bool = Field(default=True)
    file_level: str = Field(default="DEBUG")
    file_directory: str = Field(default="~/.local/share/chatmemory/logs")
    file_mode: Literal["per_run", "single"] = Field(
        default="per_run", description="'per_run' timestamped files or one rotating 'single' file"
    )
    rotation_max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)
    rotation_backup_count: int = Field(default=5, ge=0)
    components: dict[str, str] = Field(
        default_factory=lambda: {"chatmemory": "INFO", "asyncio": "WARNING", "aiosqlite": "WARNING"},
        description="Per-logger levels",
    )

    @field_validator("console_level", "display_min_level", "file_level")
    @classmethod
    def check_level(cls, v: str) -> str:
        v = v.strip().upper()
        if not isinstance(logging.getLevelName(v), int):
            raise ValueError(f"unknown log level '{v}'")
        return v


class MemoryConfig(BaseModel):
    """
    Root configuration for the conversation memory manager.

    Examples:
        >>> config = MemoryConfig()
        >>> config.default_language
        'ko'
        >>> MemoryConfig(stale_hours=1).stale_hours
        1.0
    """

    default_language: str = Field(
        default="ko",
        description="Language code for new sessions and the soft-fail path of language detection",
    )
    recent_message_limit: int = Field(
        default=10, ge=1, description="Turns fetched when assembling memory context"
    )
    summary_window_size: int = Field(
        default=10, ge=1, description="Turns handed to the summarizer"
    )
    summary_trigger_turns: int = Field(
        default=10, ge=1, description="Turns since the last summary that trigger a new one"
    )
    summary_trigger_chars: int = Field(
        default=4000, ge=1, description="Characters in the summary window that trigger a new one"
    )
    stale_hours: float = Field(
        default=24.0, gt=0, description="Idle hours after which a session counts as inactive"
    )
    default_token_budget: int = Field(
        default=1500, ge=0, description="Token budget used when build_memory_context gets none"
    )
    token_estimator: Literal["chars", "tiktoken"] = Field(
        default="chars", description="Bundled token estimator used by ConversationMemoryManager.create"
    )
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("default_language")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("default_language must not be empty")
        return v


# =============================================================================
# HELPERS
# =============================================================================


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value into bool, int, float or str."""
    lowered = value.strip().lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """
    Collect ``CHATMEMORY_*`` environment variables as a nested dict.

    ``CHATMEMORY_STALE_HOURS=12`` -> ``{"stale_hours": 12}``
    ``CHATMEMORY_STORAGE__TYPE=sqlite`` -> ``{"storage": {"type": "sqlite"}}``
    """
    environ = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key == ENV_CONFIG_PATH:
            continue
        parts = [p for p in key[len(ENV_PREFIX):].lower().split("__") if p]
        if not parts:
            continue
        target = overrides
        for part in parts[:-1]:
            target = target.setdefault(part, {})
            if not isinstance(target, dict):
                break
        else:
            target[parts[-1]] = _parse_env_value(value)
    return overrides


def load_toml_config(config_path: Path) -> dict[str, Any]:
    """
    Read the ``[memory]`` section of a TOML file.

    Raises:
        ConfigError: If the file is missing or is not valid TOML.
    """
    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    logger.debug(f"Loaded memory config from {path}")
    return raw.get("memory", {})


def load_memory_config(
    config_dict: dict[str, Any] | None = None,
    config_path: Path | str | None = None,
    overrides: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> MemoryConfig:
    """
    Load and validate memory configuration.

    Args:
        config_dict: Pre-parsed configuration. A ``"memory"`` key is unwrapped
            if present.
        config_path: TOML file to read. Falls back to ``$CHATMEMORY_CONFIG_PATH``.
        overrides: Runtime overrides applied last.
        environ: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated MemoryConfig.

    Raises:
        ConfigError: If the file cannot be read or validation fails.
    """
    environ = os.environ if environ is None else environ
    data: dict[str, Any] = {}

    if config_path is None and environ.get(ENV_CONFIG_PATH):
        config_path = environ[ENV_CONFIG_PATH]
    if config_path is not None:
        data = _deep_merge(data, load_toml_config(Path(config_path)))

    if config_dict is not None:
        data = _deep_merge(data, config_dict.get("memory", config_dict))

    data = _deep_merge(data, _env_overrides(environ))

    if overrides:
        data = _deep_merge(data, overrides)

    try:
        return MemoryConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid memory configuration: {e}") from e
