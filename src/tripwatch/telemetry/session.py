"""
Stored sign-in session: the engine's auth collaborator.

Supplies the bearer credential and device identifier, persists them across
restarts, and performs the sign-out the engine requests when the credential
turns out to be expired or rejected.
"""

import logging
import threading
from typing import Callable

from ..core.errors import ErrorKind
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class StoredSession:
    """
    Credential holder backed by a durable store.

    Listeners registered with add_sign_in_listener / add_sign_out_listener are
    told about every change; the engine uses them to drive the Mode Scheduler.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.Lock()
        self._credential: str | None = None
        self._device_id: str | None = None
        self._sign_in_listeners: list[Callable[[str, str], None]] = []
        self._sign_out_listeners: list[Callable[[], None]] = []

    @property
    def credential(self) -> str | None:
        return self._credential

    @property
    def device_id(self) -> str | None:
        return self._device_id

    @property
    def is_authenticated(self) -> bool:
        return bool(self._credential and self._device_id)

    def add_sign_in_listener(self, listener: Callable[[str, str], None]) -> None:
        self._sign_in_listeners.append(listener)

    def add_sign_out_listener(self, listener: Callable[[], None]) -> None:
        self._sign_out_listeners.append(listener)

    def restore(self) -> bool:
        """
        Load a previously stored session.

        Returns:
            True if a complete session was found.
        """
        if not self.store.exists(SESSION_KEY):
            return False
        data = self.store.get(SESSION_KEY)
        credential, device_id = data.get("credential"), data.get("device_id")
        if not credential or not device_id:
            logger.warning("Stored session is incomplete, ignoring it")
            return False
        with self._lock:
            self._credential = credential
            self._device_id = device_id
        logger.info(f"Session restored for device {device_id}")
        return True

    def sign_in(self, credential: str, device_id: str) -> None:
        """Store a new credential and notify listeners."""
        with self._lock:
            self._credential = credential
            self._device_id = device_id
            self.store.put(SESSION_KEY, credential=credential, device_id=device_id)
        logger.info(f"Signed in, device {device_id}")
        for listener in list(self._sign_in_listeners):
            listener(credential, device_id)

    def sign_out(self, reason: ErrorKind | None = None) -> None:
        """Forget the credential and notify listeners."""
        with self._lock:
            if self._credential is None and not self.store.exists(SESSION_KEY):
                return
            self._credential = None
            self._device_id = None
            if self.store.exists(SESSION_KEY):
                self.store.delete(SESSION_KEY)
        logger.info(f"Signed out{f' ({reason})' if reason else ''}")
        for listener in list(self._sign_out_listeners):
            listener()
