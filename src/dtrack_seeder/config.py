"""Run configuration: defaults, YAML file, environment and CLI overrides."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from .dispatcher import DispatchSettings
from .errors import ConfigurationError
from .utils.durations import format_duration, parse_duration
from .utils.env import env_value

_DURATION_FIELDS = ("poll_interval", "wait_timeout", "delay", "ready_timeout", "request_timeout")
_ENV_FIELDS = ("url", "password", "bom_dir")


@dataclass(slots=True)
class SeederConfig:
    """Everything one seeding run needs. Durations are stored in seconds."""

    url: str = ""
    password: str = ""
    project_count: int = 10
    bom_dir: Path | None = None
    wait: bool = False
    poll_interval: float = 1.0
    wait_timeout: float = 300.0
    delay: float = 0.0
    concurrency: int = 1
    skip_failed: bool = False
    ready_timeout: float = 60.0
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.bom_dir is not None and not isinstance(self.bom_dir, Path):
            self.bom_dir = Path(self.bom_dir)
        for name in _DURATION_FIELDS:
            try:
                setattr(self, name, parse_duration(getattr(self, name)))
            except ValueError as exc:
                raise ConfigurationError(f"{name}: {exc}") from exc
        if self.project_count < 0:
            raise ConfigurationError("project_count must be non-negative.")
        if self.concurrency <= 0:
            raise ConfigurationError("concurrency must be a positive integer.")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive.")
        if self.wait_timeout <= 0:
            raise ConfigurationError("wait_timeout must be positive.")

    def validate_for_run(self) -> None:
        """Check the fields that only matter when talking to a live server."""

        if not self.url:
            raise ConfigurationError("Dependency-Track URL required. Use --url or DTRACK_URL.")
        if not self.password:
            raise ConfigurationError(
                "admin password required. Use --pass or DTRACK_PASSWORD."
            )
        if self.bom_dir is None:
            raise ConfigurationError("BOM directory required. Use --boms or DTRACK_BOM_DIR.")

    def dispatch_settings(self) -> DispatchSettings:
        return DispatchSettings(
            concurrency=self.concurrency,
            skip_failed=self.skip_failed,
            inter_unit_delay=self.delay,
            wait=self.wait,
            poll_interval=self.poll_interval,
            wait_timeout=self.wait_timeout,
        )

    def as_dict(self, *, redact: bool = True) -> dict[str, Any]:
        payload = asdict(self)
        if redact and payload["password"]:
            payload["password"] = "***"
        if payload["bom_dir"] is not None:
            payload["bom_dir"] = str(payload["bom_dir"])
        for name in _DURATION_FIELDS:
            payload[name] = format_duration(payload[name])
        return payload


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise ConfigurationError(f"failed to read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse config {path}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"config {path} must contain a mapping at the top level.")
    known = {field.name for field in fields(SeederConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"unknown config keys in {path}: {', '.join(unknown)}")
    return dict(data)


def load_config(
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SeederConfig:
    """Merge defaults < YAML file < ``DTRACK_*`` environment < explicit overrides.

    ``None`` values in ``overrides`` mean "not given" and do not shadow lower layers.
    """

    merged: dict[str, Any] = {}
    if config_path is not None:
        merged.update(_read_yaml(Path(config_path)))
    for name in _ENV_FIELDS:
        value = env_value(name)
        if value is not None:
            merged[name] = value
    for key, value in (overrides or {}).items():
        if value is not None:
            merged[key] = value
    try:
        return SeederConfig(**merged)
    except TypeError as exc:
        raise ConfigurationError(f"invalid configuration: {exc}") from exc


__all__ = ["SeederConfig", "load_config"]
