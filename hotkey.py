"""Global key listener adapter based on pynput."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from errors import InputListenerFailure
from models import KeyState

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

KeyEventCallback = Callable[[str, KeyState], None]


def key_name(key: object) -> str:
    """Stable name for a pynput key, e.g. ``Key.ctrl_l`` or ``'a'``."""
    return str(key)


class GlobalKeyListener:
    """Forwards every key DOWN/UP in order.

    OS auto-repeat resends DOWN for a held key; those repeats are dropped here
    so the interpreter sees one DOWN per physical press.
    """

    def __init__(self) -> None:
        self._listener: Optional[object] = None
        self._down: set[str] = set()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._listener is not None

    def start(self, on_event: KeyEventCallback) -> None:
        if keyboard is None:
            raise InputListenerFailure("pynput is not installed")
        self.stop()

        def _on_press(key: object) -> None:
            name = key_name(key)
            with self._lock:
                if name in self._down:
                    return
                self._down.add(name)
            on_event(name, KeyState.DOWN)

        def _on_release(key: object) -> None:
            name = key_name(key)
            with self._lock:
                self._down.discard(name)
            on_event(name, KeyState.UP)

        try:
            self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
            self._listener.start()
        except Exception as exc:
            self._listener = None
            logger.error("global key listener failed to attach: %s", exc)
            raise InputListenerFailure(str(exc)) from exc

    def stop(self) -> None:
        listener = self._listener
        if listener is not None:
            listener.stop()
            self._listener = None
        with self._lock:
            self._down.clear()
