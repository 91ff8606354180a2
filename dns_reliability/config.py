"""
Monitor configuration loading.

Reads the YAML target list and timing settings:

    interval: 1s
    report_interval: 1m
    dns:
      - provider: Google
        servers:
          - name: google-1
            ipv4: 8.8.8.8
            ipv6: 2001:4860:4860::8888
            query: www.example.com
"""

import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any, Union

import dns.exception
import dns.name
import yaml

from .models import MonitorConfig, ProviderGroup, RecordType, Target, Transport
from .query_engine import DEFAULT_TIMEOUT

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when the configuration is missing or invalid."""


def parse_duration(value: Union[str, int, float], field: str = "duration") -> float:
    """
    Parse a duration into seconds.

    Accepts Go style strings ("300ms", "1.5s", "1m30s") and bare
    numbers, which are taken as seconds.

    Raises:
        ConfigError: If the value is not a valid non-negative duration
    """
    if isinstance(value, bool):
        raise ConfigError(f"{field}: expected a duration, got {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if text == "0":
            return 0.0
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if not text or pos != len(text):
            raise ConfigError(f"{field}: invalid duration {value!r}")
    else:
        raise ConfigError(f"{field}: expected a duration, got {value!r}")
    if seconds < 0:
        raise ConfigError(f"{field}: duration cannot be negative")
    return seconds


def format_duration(seconds: float) -> str:
    """Format seconds the way durations are written in the config."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        if seconds >= 1e-3:
            return f"{round(seconds * 1e3, 6):g}ms"
        return f"{round(seconds * 1e6, 3):g}µs"
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    text = f"{round(secs, 9):g}s"
    if hours:
        return f"{int(hours)}h{int(minutes)}m{text}"
    if minutes:
        return f"{int(minutes)}m{text}"
    return text


def _require_str(data: dict, key: str, where: str, required: bool = True) -> str:
    value = data.get(key)
    if value is None:
        if required:
            raise ConfigError(f"{where}: missing required field '{key}'")
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{where}: '{key}' must be a string")
    value = value.strip()
    if required and not value:
        raise ConfigError(f"{where}: '{key}' cannot be empty")
    return value


def _parse_query(data: dict, where: str) -> str:
    query = _require_str(data, "query", where)
    try:
        dns.name.from_text(query)
    except dns.exception.DNSException as e:
        raise ConfigError(f"{where}: invalid query name {query!r}: {e}") from None
    return query


def _parse_target(data: Any, provider: str, where: str) -> Target:
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: server entry must be a mapping")
    return Target(
        name=_require_str(data, "name", where),
        query=_parse_query(data, where),
        ipv4=_require_str(data, "ipv4", where, required=False),
        ipv6=_require_str(data, "ipv6", where, required=False),
        provider=provider,
    )


def _parse_provider(data: Any, index: int) -> ProviderGroup:
    where = f"dns[{index}]"
    if not isinstance(data, dict):
        raise ConfigError(f"{where}: provider entry must be a mapping")
    provider = _require_str(data, "provider", where, required=False)
    servers = data.get("servers") or []
    if not isinstance(servers, list):
        raise ConfigError(f"{where}: 'servers' must be a list")
    return ProviderGroup(
        provider=provider,
        servers=tuple(
            _parse_target(server, provider, f"{where}.servers[{i}]")
            for i, server in enumerate(servers)
        ),
    )


def _parse_enum(enum_cls, value: Any, field: str, normalize=str.lower):
    if not isinstance(value, str):
        raise ConfigError(f"{field}: expected a string, got {value!r}")
    try:
        return enum_cls(normalize(value.strip()))
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise ConfigError(f"{field}: {value!r} is not one of {choices}") from None


def parse_config(data: Any) -> MonitorConfig:
    """
    Build a MonitorConfig from parsed YAML data.

    Raises:
        ConfigError: If the data is not a valid configuration
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")

    if data.get("interval") is None:
        raise ConfigError("interval: missing required field")
    interval = parse_duration(data["interval"], "interval")
    if interval <= 0:
        raise ConfigError("interval: must be a positive duration")
    report_interval = parse_duration(data.get("report_interval") or 0, "report_interval")

    timeout = DEFAULT_TIMEOUT
    if data.get("timeout") is not None:
        timeout = parse_duration(data["timeout"], "timeout")
        if timeout <= 0:
            raise ConfigError("timeout: must be a positive duration")

    transport = Transport.UDP
    if data.get("transport") is not None:
        transport = _parse_enum(Transport, data["transport"], "transport")
    record_type = RecordType.A
    if data.get("record_type") is not None:
        record_type = _parse_enum(RecordType, data["record_type"], "record_type", str.upper)

    groups = data.get("dns") or []
    if not isinstance(groups, list):
        raise ConfigError("dns: must be a list of providers")
    providers = tuple(_parse_provider(group, i) for i, group in enumerate(groups))

    seen: set[str] = set()
    for provider in providers:
        for target in provider.servers:
            if target.name in seen:
                raise ConfigError(f"Duplicate target name '{target.name}'")
            seen.add(target.name)

    return MonitorConfig(
        interval=interval,
        report_interval=report_interval,
        timeout=timeout,
        transport=transport,
        record_type=record_type,
        providers=providers,
    )


def parse_config_text(raw: str) -> MonitorConfig:
    """Parse YAML configuration text."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    return parse_config(data)


def load_config(path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> MonitorConfig:
    """
    Load configuration from a YAML file.

    Raises:
        ConfigError: If the file cannot be read or is invalid
    """
    path = Path(path)
    LOGGER.debug("Loading configuration from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    config = parse_config_text(raw)
    LOGGER.info(
        "Loaded %d target(s) from %s (%d pollable)",
        len(config.targets),
        path,
        len(config.pollable_targets),
    )
    return config


def with_overrides(
    config: MonitorConfig,
    interval: Union[str, None] = None,
    report_interval: Union[str, None] = None,
    timeout: Union[str, None] = None,
    transport: Union[str, None] = None,
) -> MonitorConfig:
    """
    Apply command line overrides to a loaded configuration.

    Raises:
        ConfigError: If an override is invalid
    """
    changes: dict[str, Any] = {}
    if interval is not None:
        changes["interval"] = parse_duration(interval, "interval")
        if changes["interval"] <= 0:
            raise ConfigError("interval: must be a positive duration")
    if report_interval is not None:
        changes["report_interval"] = parse_duration(report_interval, "report_interval")
    if timeout is not None:
        changes["timeout"] = parse_duration(timeout, "timeout")
        if changes["timeout"] <= 0:
            raise ConfigError("timeout: must be a positive duration")
    if transport is not None:
        changes["transport"] = _parse_enum(Transport, transport, "transport")
    if not changes:
        return config
    return replace(config, **changes)
