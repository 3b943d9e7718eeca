"""Configuration loading from a YAML/JSON document plus env-var overrides."""

import json
import os
import re
import logging
from dataclasses import dataclass, field

import yaml

from logcube.casts import Cast

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class SourceConfig:
    pattern: re.Pattern
    type: str
    glob: str = ""
    path: str = ""
    casts: dict[str, Cast] = field(default_factory=dict)

    def cast_for(self, name: str) -> Cast:
        return self.casts.get(name, Cast.STRING)


@dataclass(frozen=True)
class Config:
    cube: str
    sources: list[SourceConfig] = field(default_factory=list)
    checkpoint_db: str = "data.db"
    batch_size: int = 500
    concurrency: int = 5
    upload_interval: float = 5.0
    flush_interval: float = 0.5
    gap_sleep: float = 1.0
    poll_interval: float = 0.25
    rescan_interval: float = 10.0
    request_timeout: float = 30.0
    drain_on_shutdown: bool = True

    @property
    def put_url(self) -> str:
        return self.cube.rstrip("/") + "/1.0/event/put"


def load_document(path: str) -> dict:
    """Read the config file.

    ``*.json`` files and documents starting with ``{`` go through the JSON
    parser, since YAML 1.1 rejects tab indentation and reads ``5e2`` as a
    string. Everything else is YAML.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e

    try:
        if path.endswith(".json") or text.lstrip().startswith("{"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"invalid config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a mapping")
    logger.info("Loaded config from %s", path)
    return data


def parse_source(raw: dict, index: int) -> SourceConfig:
    """Validate one entry of ``sources`` and compile its pattern and casts."""
    if not isinstance(raw, dict):
        raise ConfigError(f"sources[{index}] must be a mapping")

    glob_expr = raw.get("glob") or ""
    path = raw.get("path") or ""
    if not glob_expr and not path:
        raise ConfigError(f"sources[{index}] needs a glob or a path")

    try:
        pattern = re.compile(raw.get("pattern") or "")
    except re.error as e:
        raise ConfigError(f"sources[{index}] has an invalid pattern: {e}") from e

    raw_casts = raw.get("cast") or {}
    if not isinstance(raw_casts, dict):
        raise ConfigError(f"sources[{index}] cast must be a mapping of field to cast name")

    casts = {}
    for name, cast_name in raw_casts.items():
        if not cast_name:
            continue
        try:
            casts[name] = Cast.from_name(cast_name)
        except ValueError as e:
            raise ConfigError(f"sources[{index}] field {name!r}: {e}") from e

    unknown = set(casts) - set(pattern.groupindex)
    if unknown:
        logger.warning("sources[%d]: casts for fields not in pattern: %s",
                       index, ", ".join(sorted(unknown)))

    return SourceConfig(
        pattern=pattern,
        type=raw.get("type") or "",
        glob=glob_expr,
        path=path,
        casts=casts,
    )


def _setting(data: dict, key: str, env: str, default, convert):
    value = os.environ.get(env)
    if value is None:
        value = data.get(key, default)
    try:
        return convert(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {key}: {value!r}") from e


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return _parse_bool(str(value))


def load_config(path: str, checkpoint_db: str | None = None) -> Config:
    """Build Config from the document at *path*, env vars and CLI overrides."""
    data = load_document(path)

    cube = data.get("cube")
    if not cube:
        raise ConfigError("config is missing the cube endpoint")

    raw_sources = data.get("sources") or []
    if not isinstance(raw_sources, list):
        raise ConfigError("sources must be a list")
    sources = [parse_source(raw, i) for i, raw in enumerate(raw_sources)]

    config = Config(
        cube=cube,
        sources=sources,
        checkpoint_db=checkpoint_db or _setting(data, "checkpoint_db", "CHECKPOINT_DB", Config.checkpoint_db, str),
        batch_size=_setting(data, "batch_size", "BATCH_SIZE", Config.batch_size, int),
        concurrency=_setting(data, "concurrency", "CONCURRENCY", Config.concurrency, int),
        upload_interval=_setting(data, "upload_interval", "UPLOAD_INTERVAL", Config.upload_interval, float),
        flush_interval=_setting(data, "flush_interval", "FLUSH_INTERVAL", Config.flush_interval, float),
        gap_sleep=_setting(data, "gap_sleep", "GAP_SLEEP", Config.gap_sleep, float),
        poll_interval=_setting(data, "poll_interval", "POLL_INTERVAL", Config.poll_interval, float),
        rescan_interval=_setting(data, "rescan_interval", "RESCAN_INTERVAL", Config.rescan_interval, float),
        request_timeout=_setting(data, "request_timeout", "REQUEST_TIMEOUT", Config.request_timeout, float),
        drain_on_shutdown=_setting(data, "drain_on_shutdown", "DRAIN_ON_SHUTDOWN", Config.drain_on_shutdown, _to_bool),
    )

    if config.batch_size < 1:
        raise ConfigError("batch_size must be at least 1")
    if config.concurrency < 1:
        raise ConfigError("concurrency must be at least 1")
    return config
