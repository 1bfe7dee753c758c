"""
Configuration management for tocminer using Pydantic.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tocminer.errors import ConfigError

# --- Setup Logging ---
log = logging.getLogger(__name__)

# Canonical strategy priority: structured data first, guessed URLs last.
DEFAULT_STRATEGY_ORDER: List[str] = [
    "json_ld",
    "direct_api",
    "metadata",
    "targeted_html",
    "search_results",
    "session_toc_url",
    "session_txt",
    "url_patterns",
]

DEFAULT_PROVIDERS: List[str] = ["kyobo", "aladin", "yes24"]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

# --- Nested Configuration Models ---


class LibraryConfig(BaseModel):
    """Remote catalogue the ordered strategies talk to."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(default="https://www.nl.go.kr", description="Catalogue site root.")
    api_key: str = Field(default="", description="Open API key for the catalogue.")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class FetchConfig(BaseModel):
    """HTTP transport configuration."""

    model_config = ConfigDict(extra="forbid")

    timeout: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds.")
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent sent with every request.")
    accept_language: str = Field(default="ko-KR,ko;q=0.9,en;q=0.8", description="Accept-Language header.")
    max_retries: int = Field(default=0, ge=0, description="Status-based retries (429/5xx). Off by default.")
    connection_limit: int = Field(default=20, ge=1, description="Maximum pooled connections.")


class ExtractionSettings(BaseModel):
    """Configuration for the ordered strategy cascade."""

    model_config = ConfigDict(extra="forbid")

    strategy_order: List[str] = Field(
        default_factory=lambda: list(DEFAULT_STRATEGY_ORDER),
        description="Priority order of extraction strategies.",
    )
    enabled: Dict[str, bool] = Field(
        default_factory=dict,
        description="Per-strategy enable flags. Strategies not listed are enabled.",
    )
    early_exit_threshold: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Confidence at or above which the cascade stops immediately.",
    )
    strategy_timeout: float = Field(default=30.0, gt=0, description="Upper bound for one strategy attempt.")

    @field_validator("strategy_order")
    @classmethod
    def validate_strategy_order(cls, v: List[str]) -> List[str]:
        """Ensure strategy order is non-empty and has no duplicates."""
        if not v:
            raise ValueError("strategy_order must contain at least one strategy")
        if len(set(v)) != len(v):
            raise ValueError("strategy_order must not contain duplicates")
        return v

    def is_enabled(self, name: str) -> bool:
        return self.enabled.get(name, True)


class AggregatorConfig(BaseModel):
    """Configuration for the parallel multi-provider scraper."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    providers: List[str] = Field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    provider_timeout: float = Field(default=10.0, gt=0, description="Timeout for one provider in seconds.")
    min_content_length: int = Field(default=50, ge=0, description="Results shorter than this are discarded.")
    cache_ttl_seconds: float = Field(default=7 * 24 * 60 * 60, gt=0, description="Result cache lifetime.")
    proxy_url: Optional[str] = Field(
        default=None,
        description="Optional pass-through proxy prefix; the target URL is appended URL-encoded.",
    )


class MonitoringConfig(BaseModel):
    """Configuration for logging, metrics and statistics persistence."""

    model_config = ConfigDict(extra="forbid")

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(default=None, description="Path to log file. If None, logs to console.")
    prometheus_port: int | None = Field(
        default=None,
        description="Port for the Prometheus metrics exporter. None to disable.",
    )
    snapshot_path: str | None = Field(
        default=None,
        description="Where performance statistics are saved between runs. None to disable.",
    )
    recent_results_limit: int = Field(default=100, ge=1, description="Size of the recent-outcome buffer.")

    @field_validator("log_file", "snapshot_path", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "tocminer"
    library: LibraryConfig = Field(default_factory=LibraryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(
        env_prefix="TOCMINER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="forbid",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        """Load and validate a YAML configuration file."""
        path = Path(path)
        if not path.is_file():
            raise ConfigError(f"Configuration file not found: {path}")
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"{path} is not valid YAML: {e}") from e

        if not raw:
            log.warning("Configuration file %s is empty, using defaults", path)
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")
        try:
            return cls.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {path}: {e}") from e


def find_config_file(directory: Optional[Path] = None) -> Optional[Path]:
    """``tocminer.yaml`` or ``tocminer.yml`` in ``directory`` (default: the working directory)."""
    base = directory or Path.cwd()
    for name in ("tocminer.yaml", "tocminer.yml"):
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None
