from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Config loader.

Responsibilities:
- Load the YAML config (default ``config/dashboard.yml``)
- Validate it against the packaged ``config_schema.json``
- Apply defaults for every missing key
- Let ``GAS_URL`` from the environment (or ``.env``) override the endpoint
- Reject a ``timezone`` that is not a known IANA zone
"""

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/dashboard.yml")
ENV_BASE_URL = "GAS_URL"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class EndpointConfig:
    base_url: str | None = None
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class CacheConfig:
    sheets: float = 300.0
    query: float = 120.0
    warehouse_id: float = 600.0
    warehouse_lookup: float = 600.0


@dataclass(frozen=True)
class AttendanceConfig:
    schedule_marker: str = "班表"
    record_marker: str = "出勤記錄"
    hours_sheet: str = "出勤時數"
    exclude_for_rate: tuple[str, ...] = ()  # additions to the built-in set
    exclude_from_absence: tuple[str, ...] = ()
    rank_size: int = 5


@dataclass(frozen=True)
class SessionConfig:
    state_directory: str = ".state"
    remember_days: float = 3


@dataclass(frozen=True)
class DashboardConfig:
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    cache_ttl_seconds: CacheConfig = field(default_factory=CacheConfig)
    attendance: AttendanceConfig = field(default_factory=AttendanceConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    warehouses: tuple[str, ...] = ()
    timezone: str = "Asia/Taipei"

    def today(self) -> date:
        """Current date in the configured zone; year-less dates resolve against it."""
        return datetime.now(ZoneInfo(self.timezone)).date()

    def knows_warehouse(self, key: str) -> bool:
        """True when no warehouse list is configured or ``key`` is on it (case-insensitive)."""
        if not self.warehouses:
            return True
        return key.strip().upper() in {w.strip().upper() for w in self.warehouses}


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or invalid, or the data
            violates it (unknown keys, wrong types, out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _with_env(cfg: DashboardConfig, environ: Mapping[str, str] | None) -> DashboardConfig:
    env = os.environ if environ is None else environ
    url = (env.get(ENV_BASE_URL) or "").strip()
    if not url:
        return cfg
    return replace(cfg, endpoint=replace(cfg.endpoint, base_url=url))


def _check_timezone(name: str) -> None:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"unknown timezone: {name}") from e


def default_config(environ: Mapping[str, str] | None = None) -> DashboardConfig:
    return _with_env(DashboardConfig(), environ)


def load_config(path: Path, environ: Mapping[str, str] | None = None) -> DashboardConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    ep = data.get("endpoint") or {}
    ttl = data.get("cache_ttl_seconds") or {}
    att = data.get("attendance") or {}
    sess = data.get("session") or {}
    defaults = DashboardConfig()
    cfg = DashboardConfig(
        endpoint=EndpointConfig(
            base_url=ep.get("base_url") or None,
            timeout_seconds=ep.get("timeout_seconds"),
        ),
        cache_ttl_seconds=replace(defaults.cache_ttl_seconds, **ttl),
        attendance=replace(
            defaults.attendance,
            **{k: v for k, v in att.items() if k not in ("exclude_for_rate", "exclude_from_absence")},
            exclude_for_rate=tuple(att.get("exclude_for_rate") or ()),
            exclude_from_absence=tuple(att.get("exclude_from_absence") or ()),
        ),
        session=replace(defaults.session, **sess),
        warehouses=tuple(data.get("warehouses") or ()),
        timezone=data.get("timezone", defaults.timezone),
    )
    _check_timezone(cfg.timezone)
    return _with_env(cfg, environ)
