# copilot/keyboard.py

import asyncio
import logging
import sys
import threading
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], object]


class KeySource(Protocol):
    def add_listener(self, callback: KeyCallback) -> None: ...

    def remove_listener(self, callback: KeyCallback) -> None: ...


class KeyboardSubscription:
    """A key listener registration that is released exactly once."""

    def __init__(self, source: KeySource, callback: KeyCallback):
        self.source = source
        self.callback = callback
        self.active = False

    def register(self) -> "KeyboardSubscription":
        if not self.active:
            self.source.add_listener(self.callback)
            self.active = True
        return self

    def close(self):
        if self.active:
            self.source.remove_listener(self.callback)
            self.active = False

    def __enter__(self):
        return self.register()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def normalize_key(key: str) -> str:
    """'S' and 'Shift+S' both become 'shift+s'; 'r' stays 'r'."""
    key = key.strip()
    if len(key) == 1 and key.isalpha() and key.isupper():
        return "shift+" + key.lower()
    return key.lower()


class TerminalKeySource:
    """
    Reads one key per line from stdin on a daemon thread and hands it to the
    listeners on the event loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, stream=None):
        self.loop = loop
        self.stream = stream or sys.stdin
        self._listeners: List[KeyCallback] = []
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def add_listener(self, callback: KeyCallback):
        self._listeners.append(callback)
        if self._thread is None:
            self._thread = threading.Thread(target=self._read_loop, daemon=True)
            self._thread.start()

    def remove_listener(self, callback: KeyCallback):
        if callback in self._listeners:
            self._listeners.remove(callback)
        if not self._listeners:
            self._stop.set()

    def _dispatch(self, key: str):
        for cb in list(self._listeners):
            cb(key)

    def _read_loop(self):
        while not self._stop.is_set():
            line = self.stream.readline()
            if not line:
                break
            key = line.strip()
            if key and not self._stop.is_set():
                self.loop.call_soon_threadsafe(self._dispatch, key)
