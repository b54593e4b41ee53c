"""Configuration for fetching remote threads."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from . import __version__

CONFIG_PATH = Path.home() / ".fedithread" / "config.yaml"

DEFAULT_ACCEPT = "application/json"
DEFAULT_USER_AGENT = f"fedithread/{__version__}"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load settings from ``~/.fedithread/config.yaml`` if it exists."""
    path = CONFIG_PATH if path is None else path
    if path.exists():
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logging.warning("Ignoring %s: expected a mapping at the top level", path)
            return {}
        return data
    return {}


def _positive_int(value: Any) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"expected a positive integer, got {value!r}")
    return number


def _positive_float(value: Any) -> float:
    number = float(value)
    if number <= 0:
        raise ValueError(f"expected a positive number, got {value!r}")
    return number


def _optional_positive_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return _positive_int(value)


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "timeout": _positive_float,
    "accept": str,
    "user_agent": str,
    "max_concurrency": _positive_int,
    "max_pages": _optional_positive_int,
}


@dataclass
class ThreadConfig:
    """Settings shared by every request made while loading one thread.

    ``max_pages`` bounds how many pages a single reply collection may span;
    ``None`` leaves collections unbounded.
    """

    timeout: float = 10.0
    accept: str = DEFAULT_ACCEPT
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = 8
    max_pages: Optional[int] = None

    def update(self, values: Dict[str, Any], *, source: str) -> None:
        """Apply recognised keys from ``values``, skipping invalid entries."""
        known = {f.name for f in fields(self)}
        for key, raw in values.items():
            if key not in known:
                logging.warning("Unknown setting %r in %s", key, source)
                continue
            try:
                setattr(self, key, _CONVERTERS[key](raw))
            except (TypeError, ValueError) as exc:
                logging.warning(
                    "Invalid value %r for %s in %s, keeping %r: %s",
                    raw,
                    key,
                    source,
                    getattr(self, key),
                    exc,
                )

    @classmethod
    def from_env(cls, config_path: Optional[Path] = None) -> "ThreadConfig":
        """Build a configuration from the YAML file and ``FEDITHREAD_*`` variables.

        Environment variables take precedence over the file.
        """
        config = cls()
        path = CONFIG_PATH if config_path is None else config_path
        file_values = load_config(path)
        if file_values:
            config.update(file_values, source=str(path))

        env_values = {}
        for f in fields(cls):
            value = os.getenv(f"FEDITHREAD_{f.name.upper()}")
            if value is not None:
                env_values[f.name] = value
        if env_values:
            config.update(env_values, source="environment")
        return config
