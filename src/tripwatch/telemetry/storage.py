"""
Durable key/value storage backed by Kivy's JsonStore.

String keys map to JSON objects; a missing key means "absent". Each put is
written through to disk before it returns.
"""

import logging
import os
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

# Prevent Kivy from consuming command-line arguments
os.environ.setdefault("KIVY_NO_ARGS", "1")

from kivy.storage.jsonstore import JsonStore

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueStore(Protocol):
    """The subset of the Kivy store API the engine relies on."""

    def exists(self, key: str) -> bool:
        ...

    def get(self, key: str) -> dict[str, Any]:
        ...

    def put(self, key: str, **values: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def open_store(path: str | Path) -> JsonStore:
    """
    Open (creating if needed) a JSON-file store.

    Args:
        path: File path; `~` is expanded and parent directories are created.
    """
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Opening store: {path}")
    return JsonStore(str(path))
