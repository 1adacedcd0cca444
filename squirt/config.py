"""
Runtime settings resolved from ``SQUIRT_*`` environment variables.

    SQUIRT_DATA_DIR          Directory for the SQLite key-value file (default: .squirt)
    SQUIRT_STORAGE_BACKEND   "sqlite" or "memory" (default: sqlite)
    SQUIRT_ENDPOINTS_FILE    JSON file with the bootstrap endpoint list
    SQUIRT_HEALTH_INTERVAL   Seconds between endpoint health checks (default: 60)
    SQUIRT_HTTP_TIMEOUT      Seconds before a SPARQL request times out (default: 30)
    SQUIRT_SYNC_GRAPH        Graph IRI pushes go to when none is given
    SQUIRT_LOG_LEVEL         Logging level for the server entry point (default: INFO)

Decision: D-014
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from squirt.endpoints.bootstrap import parse_endpoint_config
from squirt.endpoints.models import Endpoint
from squirt.errors import ConfigurationError

LOG = logging.getLogger("squirt.config")

_ENV_FIELDS = {
    "data_dir": "SQUIRT_DATA_DIR",
    "storage_backend": "SQUIRT_STORAGE_BACKEND",
    "endpoints_file": "SQUIRT_ENDPOINTS_FILE",
    "health_interval": "SQUIRT_HEALTH_INTERVAL",
    "http_timeout": "SQUIRT_HTTP_TIMEOUT",
    "sync_graph": "SQUIRT_SYNC_GRAPH",
    "log_level": "SQUIRT_LOG_LEVEL",
}


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    data_dir: Path = Path(".squirt")
    storage_backend: Literal["sqlite", "memory"] = "sqlite"
    endpoints_file: Optional[Path] = None
    health_interval: float = Field(default=60.0, gt=0)
    http_timeout: float = Field(default=30.0, gt=0)
    sync_graph: Optional[str] = None
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from the environment. Unset or empty variables keep their defaults.

        Raises:
            ConfigurationError: A variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        values = {name: env[var] for name, var in _ENV_FIELDS.items() if env.get(var, "").strip()}
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            problems = ", ".join(
                f"{_ENV_FIELDS.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"Invalid settings: {problems}", errors=exc.errors()) from exc

    def configured_endpoints(self) -> list[Endpoint]:
        """Endpoints from ``endpoints_file``; empty when no file is configured."""
        if self.endpoints_file is None:
            return []
        return load_endpoints_file(self.endpoints_file)


def load_endpoints_file(path: Path) -> list[Endpoint]:
    """
    Read a JSON endpoint list from ``path``.

    Raises:
        ConfigurationError: Unreadable file, invalid JSON or invalid entries
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Cannot read endpoints file {path}: {exc}", path=str(path)) from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Endpoints file {path} is not valid JSON: {exc}", path=str(path)) from exc
    endpoints = parse_endpoint_config(data)
    LOG.info("Found %d endpoints in %s", len(endpoints), path)
    return endpoints
