"""Configuration for the synthetic metrics generator.

Values come from a YAML file whose keys match the sample app's
``config.yaml``. Loading never fails: a missing, unreadable, malformed or
invalid file falls back to the documented defaults.
"""
from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlparse

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_ENDPOINT = "0.0.0.0:4318"
ENDPOINT_ENV_VAR = "OTLP_EXPORTER_OTLP_ENDPOINT"

# Collection period of the exporter, independent of Config.time_interval
DEFAULT_EXPORT_INTERVAL_SECONDS = 3
DEFAULT_FLUSH_TIMEOUT_SECONDS = 1.0

# YAML key -> Config field
_YAML_KEYS = {
    "Host": "host",
    "Port": "port",
    "TimeInterval": "time_interval",
    "RandomTimeAliveIncrementer": "time_alive_incrementer",
    "RandomTotalHeapSizeUpperBound": "total_heap_size_upper_bound",
    "RandomThreadsActiveUpperBound": "threads_active_upper_bound",
    "RandomCpuUsageUpperBound": "cpu_usage_upper_bound",
}


@dataclass(frozen=True)
class Config:
    """Tunables for the generator. Built once at startup, read-only afterwards."""
    host: str = "0.0.0.0"
    port: str = "4567"
    time_interval: int = 1
    time_alive_incrementer: int = 1
    total_heap_size_upper_bound: int = 100
    threads_active_upper_bound: int = 10
    cpu_usage_upper_bound: int = 100

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Raise ConfigError if any value is out of range."""
        if not isinstance(self.host, str) or not self.host:
            raise ConfigError(f"Host must be a non-empty string: {self.host!r}")
        if not isinstance(self.port, str) or not self.port:
            raise ConfigError(f"Port must be a non-empty string: {self.port!r}")

        for name in (
            "time_interval",
            "time_alive_incrementer",
            "total_heap_size_upper_bound",
            "threads_active_upper_bound",
            "cpu_usage_upper_bound",
        ):
            value = getattr(self, name)
            # bool is an int subclass; YAML "yes" must not pass as 1
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer: {value!r}")
            if value < 0:
                raise ConfigError(f"{name} must be non-negative: {value}")

        if self.time_interval <= 0:
            raise ConfigError(f"time_interval must be positive: {self.time_interval}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Config":
        """Build a validated Config from a mapping of YAML keys.

        Keys missing from ``data`` keep their defaults; unknown keys are ignored.
        """
        kwargs: Dict[str, Any] = {}
        for key, field_name in _YAML_KEYS.items():
            if key in data:
                value = data[key]
                # Port is a string in the file format but YAML reads 4567 as int
                if field_name in ("host", "port") and isinstance(value, int) and not isinstance(value, bool):
                    value = str(value)
                kwargs[field_name] = value

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Return the config keyed by its YAML names."""
        values = asdict(self)
        return {key: values[field_name] for key, field_name in _YAML_KEYS.items()}


def load_config(path: Union[str, Path, None] = None) -> Config:
    """Read the YAML config file, falling back to defaults on any failure."""
    config_path = Path(path or DEFAULT_CONFIG_PATH)
    try:
        return _read_config(config_path)
    except ConfigError as exc:
        logger.warning("Using default configuration: %s", exc)
        return Config()


def _read_config(path: Path) -> Config:
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"cannot read {path}: {exc}") from exc

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"cannot parse {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path} does not contain a mapping")

    config = Config.from_dict(data)
    logger.info("Loaded configuration from %s", path)
    return config


def resolve_endpoint(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the export target, honouring OTLP_EXPORTER_OTLP_ENDPOINT."""
    env = os.environ if environ is None else environ
    return env.get(ENDPOINT_ENV_VAR) or DEFAULT_ENDPOINT


def _signal_url(endpoint: str, signal_path: str) -> str:
    # Insecure transport: bare host:port endpoints are sent over plain HTTP
    if "://" not in endpoint:
        endpoint = f"http://{endpoint}"
    if urlparse(endpoint).path.strip("/"):
        return endpoint
    return endpoint.rstrip("/") + signal_path


def metrics_url(endpoint: str) -> str:
    return _signal_url(endpoint, "/v1/metrics")


def logs_url(endpoint: str) -> str:
    return _signal_url(endpoint, "/v1/logs")
