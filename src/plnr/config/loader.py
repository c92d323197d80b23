"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from plnr.config.merge import merge_configs
from plnr.config.paths import get_config_paths
from plnr.config.schema import (
    Config,
    LLMConfig,
    LoggingConfig,
    LSPConfig,
    ToolsConfig,
)
from plnr.config.secrets import fetch_secret

_log = logging.getLogger("plnr.config")

_cached_config: Config | None = None

# Provider prefix -> env var holding its key
_API_KEY_VARS = {
    "openrouter/": "OPENROUTER_API_KEY",
    "anthropic/": "ANTHROPIC_API_KEY",
    "openai/": "OPENAI_API_KEY",
}


class ConfigError(Exception):
    """Configuration is unusable (e.g. missing API key)."""


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    API keys are NOT loaded here - use fetch_secret() for secrets.
    """
    overrides: dict[str, Any] = {}

    model = os.environ.get("MODEL")
    if model:
        overrides.setdefault("llm", {})["model"] = model

    window = os.environ.get("MODEL_CONTEXT_WINDOW")
    if window:
        try:
            overrides.setdefault("llm", {})["context_window"] = int(window)
        except ValueError:
            _log.warning("Ignoring non-integer MODEL_CONTEXT_WINDOW=%r", window)

    log_path = os.environ.get("PLNR_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    if os.environ.get("DEBUG", "").lower() == "true":
        overrides.setdefault("logging", {})["level"] = "DEBUG"

    return overrides


def _build(cls: type, data: Any) -> Any:
    """Instantiate a schema dataclass from a dict, ignoring unknown keys."""
    if not isinstance(data, dict):
        return cls()
    names = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - names
    if unknown:
        _log.debug("Ignoring unknown %s keys: %s", cls.__name__, sorted(unknown))
    return cls(**{k: v for k, v in data.items() if k in names})


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    lsp_data = data.get("lsp", {})
    if isinstance(lsp_data, dict) and isinstance(lsp_data.get("command"), str):
        # Allow `command: "pylsp"` shorthand
        lsp_data = {**lsp_data, "command": lsp_data["command"].split()}

    known_keys = {"llm", "lsp", "tools", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        llm=_build(LLMConfig, data.get("llm", {})),
        lsp=_build(LSPConfig, lsp_data),
        tools=_build(ToolsConfig, data.get("tools", {})),
        logging=_build(LoggingConfig, data.get("logging", {})),
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<root>/.plnr/config.yaml)
    3. User config (~/.config/plnr/config.yaml or %APPDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing."""
    global _cached_config
    _cached_config = None


def validate_config(config: Config) -> None:
    """Fail fast when the selected model has no API key.

    Raises:
        ConfigError: naming the environment variable to set.
    """
    for prefix, env_var in _API_KEY_VARS.items():
        if config.llm.model.startswith(prefix) and not fetch_secret(env_var):
            raise ConfigError(
                f"{env_var} is required for model {config.llm.model}. "
                f"Set it as an environment variable or add it to a .env file "
                f"in the current directory."
            )
