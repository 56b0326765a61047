"""Configuration management for audex.

Configuration is loaded with precedence handling:
1. CLI flags (highest priority)
2. Environment variables (AUDEX_*)
3. Config file (~/.audex/config.toml)
4. Default values (lowest priority)
"""

from audex.config.builder import (
    ConfigBuilder,
    ConfigSource,
    source_from_env,
    source_from_file,
)
from audex.config.env import EnvReader
from audex.config.loader import (
    ConfigFileError,
    clear_config_cache,
    get_config,
    get_default_config_path,
    get_temp_directory,
    load_config_file,
)
from audex.config.logging_factory import (
    build_logging_config,
    configure_cli_logging,
)
from audex.config.models import (
    AudexConfig,
    ExtractionConfig,
    LoggingConfig,
    RateLimitConfig,
    ServerConfig,
    ToolPathsConfig,
)

__all__ = [
    # Models
    "AudexConfig",
    "ExtractionConfig",
    "LoggingConfig",
    "RateLimitConfig",
    "ServerConfig",
    "ToolPathsConfig",
    # Loader
    "ConfigFileError",
    "clear_config_cache",
    "get_config",
    "get_default_config_path",
    "get_temp_directory",
    "load_config_file",
    # Layering
    "ConfigBuilder",
    "ConfigSource",
    "EnvReader",
    "source_from_env",
    "source_from_file",
    # Logging
    "build_logging_config",
    "configure_cli_logging",
]
