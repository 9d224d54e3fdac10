"""Configuration loading for the storescope CLI.

Brief:
  Reads a YAML config file, validates it against the bundled JSON Schema and
  returns typed pydantic section models.

Inputs:
  - Path to a YAML file (or an already-parsed mapping)

Outputs:
  - StorescopeConfig instance
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigError
from ..filtering.policy import FilterSettings
from ..sampling.origin import OriginSampler
from .config_schema import validate_config

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = "~/.config/storescope/filter.yaml"


class LoggingConfig(BaseModel):
    """Options consumed by init_logging()."""

    model_config = ConfigDict(extra="ignore")

    level: str = "info"
    stderr: bool = True
    file: Optional[str] = None
    syslog: Union[bool, Dict[str, Any]] = False

    @field_validator("level", mode="before")
    @classmethod
    def _lower_level(cls, value: object) -> str:
        return str(value or "info").strip().lower()


class ScanConfig(BaseModel):
    """Brief: Collection cycle tuning.

    Inputs:
      - max_workers: Pool size override; None means one worker per task.
      - estimate_opaque_sizes: Credit structured databases without a declared
        size and cache buckets with the fixed per-entry estimates below.
      - indexed_db_estimate_bytes / cache_bucket_estimate_bytes: Estimates.
      - top_n: Length of the per-domain rankings.
      - apply_filter: Skip origins the domain filter rejects.

    Outputs:
      - ScanConfig instance.
    """

    model_config = ConfigDict(extra="ignore")

    max_workers: Optional[int] = Field(default=None, ge=1)
    estimate_opaque_sizes: bool = False
    indexed_db_estimate_bytes: int = Field(default=5000, ge=0)
    cache_bucket_estimate_bytes: int = Field(default=10000, ge=0)
    top_n: int = Field(default=10, ge=1)
    apply_filter: bool = True

    def build_origin_sampler(self) -> OriginSampler:
        if not self.estimate_opaque_sizes:
            return OriginSampler()
        return OriginSampler(
            indexed_db_estimate_bytes=self.indexed_db_estimate_bytes,
            cache_bucket_estimate_bytes=self.cache_bucket_estimate_bytes,
        )


class SettingsStoreConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: Optional[str] = None

    def resolved_path(self) -> str:
        return os.path.abspath(os.path.expanduser(self.path or DEFAULT_SETTINGS_PATH))


class StorescopeConfig(BaseModel):
    """Top-level configuration; every section is optional."""

    model_config = ConfigDict(extra="ignore")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    domain_filter: Optional[FilterSettings] = None
    settings_store: SettingsStoreConfig = Field(default_factory=SettingsStoreConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    cache_ttl_seconds: int = Field(default=600, ge=0)

    @field_validator("logging", "settings_store", "scan", mode="before")
    @classmethod
    def _null_section(cls, value: object) -> object:
        return {} if value is None else value


def parse_config_file(config_path: str, unknown_keys: str = "warn") -> Dict[str, Any]:
    """Brief: Read and validate a YAML config file.

    Inputs:
      - config_path: Path to the YAML file.
      - unknown_keys: Passed through to validate_config().

    Outputs:
      - dict: Parsed configuration mapping (empty file -> {}).

    Raises:
      - ConfigError: unreadable file, bad YAML, or schema violations.
    """

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read config {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc

    validate_config(cfg, config_path=config_path, unknown_keys=unknown_keys)
    return cfg


def build_config(cfg: Optional[Dict[str, Any]], config_path: Optional[str] = None) -> StorescopeConfig:
    try:
        return StorescopeConfig.model_validate(cfg or {})
    except ValidationError as exc:
        raise ConfigError(
            f"Invalid configuration in {config_path or '<config dict>'}: {exc}"
        ) from exc


def load_config(
    config_path: Optional[str] = None, unknown_keys: str = "warn"
) -> Tuple[StorescopeConfig, Dict[str, Any]]:
    """
    Load the storescope configuration.

    Inputs:
        config_path: YAML path, or None for built-in defaults.
        unknown_keys: "ignore", "warn" or "error".

    Outputs:
        (config, raw): the typed StorescopeConfig and the validated mapping.
    """
    if not config_path:
        return StorescopeConfig(), {}
    raw = parse_config_file(config_path, unknown_keys=unknown_keys)
    config = build_config(raw, config_path=config_path)
    logger.debug("Loaded configuration from %s", config_path)
    return config, raw
