"""Converge a Dependency-Track project inventory to a target count."""

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = (
    "bootstrap",
    "cli",
    "client",
    "config",
    "controller",
    "dispatcher",
    "errors",
    "gate",
    "identity",
    "manifests",
    "poller",
    "readiness",
    "sweeper",
    "utils",
)


def __getattr__(name: str) -> Any:
    if name in __all__:
        module = import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
