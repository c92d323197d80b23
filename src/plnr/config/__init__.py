"""Configuration management for plnr.

Provides hierarchical YAML-based configuration with:
- User-level config (~/.config/plnr/ or %APPDATA%)
- Project-level config (<root>/.plnr/)
- Environment variable overrides (highest priority)

Example usage:
    from plnr.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.llm.model, config.llm.context_window)
"""

from plnr.config.loader import (
    ConfigError,
    get_config,
    load_config,
    reset_config,
    validate_config,
)
from plnr.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_user_config_path,
)
from plnr.config.schema import (
    DEFAULT_MODEL,
    Config,
    LLMConfig,
    LoggingConfig,
    LSPConfig,
    ToolsConfig,
)
from plnr.config.secrets import clear_secret_cache, fetch_secret

__all__ = [
    "Config",
    "ConfigError",
    "load_config",
    "get_config",
    "reset_config",
    "validate_config",
    "DEFAULT_MODEL",
    "LLMConfig",
    "LSPConfig",
    "ToolsConfig",
    "LoggingConfig",
    "fetch_secret",
    "clear_secret_cache",
    "get_config_paths",
    "get_user_config_path",
    "get_project_config_path",
]
