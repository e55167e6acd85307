"""Utility helpers for logging, environment and duration parsing."""

from .durations import format_duration, parse_duration
from .env import env_value, load_repo_dotenv
from .logging import configure_logging

__all__ = [
    "configure_logging",
    "env_value",
    "format_duration",
    "load_repo_dotenv",
    "parse_duration",
]
