"""Configuration models and loading."""

from .config import (
    DEFAULT_PROVIDERS,
    DEFAULT_STRATEGY_ORDER,
    AggregatorConfig,
    Config,
    ExtractionSettings,
    FetchConfig,
    LibraryConfig,
    MonitoringConfig,
    find_config_file,
)

__all__ = [
    "DEFAULT_PROVIDERS",
    "DEFAULT_STRATEGY_ORDER",
    "AggregatorConfig",
    "Config",
    "ExtractionSettings",
    "FetchConfig",
    "LibraryConfig",
    "MonitoringConfig",
    "find_config_file",
]
