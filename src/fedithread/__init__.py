"""Top-level package for ``fedithread``.

Public names are imported lazily so that ``import fedithread`` stays cheap and
the web dependencies are only loaded when the app is used.
"""

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .models import Missing, Resolved, ThreadNode
    from .html_sanitizer import sanitize
    from .thread import load_thread, load_thread_sync

__version__ = "0.3.0"

__all__ = [
    "__version__",
    "load_thread",
    "load_thread_sync",
    "sanitize",
    "ThreadConfig",
    "ThreadNode",
    "Resolved",
    "Missing",
    "ThreadError",
]

_ATTR_MAP = {
    "load_thread": ("fedithread.thread", "load_thread"),
    "load_thread_sync": ("fedithread.thread", "load_thread_sync"),
    "sanitize": ("fedithread.html_sanitizer", "sanitize"),
    "ThreadConfig": ("fedithread.config", "ThreadConfig"),
    "ThreadNode": ("fedithread.models", "ThreadNode"),
    "Resolved": ("fedithread.models", "Resolved"),
    "Missing": ("fedithread.models", "Missing"),
    "ThreadError": ("fedithread.errors", "ThreadError"),
}


def __getattr__(name: str):
    if name in _ATTR_MAP:
        module_name, attr = _ATTR_MAP[name]
        module = import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        return value
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
