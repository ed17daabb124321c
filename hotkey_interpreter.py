"""Turns raw key DOWN/UP events into recording intents.

The combo is Ctrl plus a second modifier (Alt by default). Pressing the combo
starts a hold recording that stops when either key is released; adding Space
makes it continuous, stopped by pressing the combo again. A hold released
before ``short_press_s`` is treated as a toggle tap and keeps recording.

All state lives on one ``HotkeyInterpreter`` and every change goes through
``transition``, so the decision table can be exercised without a listener.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Iterable, NamedTuple, Optional

from config import DEFAULT_MODIFIER_KEYS
from models import HotkeyState, Intent, KeyState

logger = logging.getLogger(__name__)

CTRL_KEYS = frozenset({"Key.ctrl_l", "Key.ctrl_r", "Key.ctrl"})
SPACE_KEYS = frozenset({"Key.space"})
DEFAULT_SHORT_PRESS_S = 0.3


@dataclass(frozen=True)
class Combo:
    ctrl: bool
    modifier: bool
    space: bool

    @property
    def armed(self) -> bool:
        return self.ctrl and self.modifier


class Transition(NamedTuple):
    state: HotkeyState
    intent: Optional[Intent]
    pressed_at: float


def transition(
    state: HotkeyState,
    key_state: KeyState,
    combo: Combo,
    now: float,
    pressed_at: float,
    short_press_s: float = DEFAULT_SHORT_PRESS_S,
) -> Transition:
    """Compute the next state and intent for one key event.

    ``combo`` is evaluated on the key set *after* the event was applied.
    ``pressed_at`` is the timestamp of the press that left ``IDLE``.
    """
    if state == HotkeyState.IDLE:
        if key_state == KeyState.DOWN and combo.armed:
            if combo.space:
                return Transition(HotkeyState.CONTINUOUS_ACTIVE, Intent.START_CONTINUOUS, now)
            return Transition(HotkeyState.HOLD_ACTIVE, Intent.START_HOLD, now)
        return Transition(state, None, pressed_at)

    if state == HotkeyState.HOLD_ACTIVE:
        if key_state == KeyState.DOWN and combo.armed and combo.space:
            return Transition(HotkeyState.CONTINUOUS_ACTIVE, Intent.UPGRADE_TO_CONTINUOUS, pressed_at)
        if key_state == KeyState.UP and not combo.armed:
            if now - pressed_at < short_press_s:
                # quick tap: keep recording as a toggle. The upgrade intent only
                # retags the open session, it never restarts or stops capture.
                return Transition(
                    HotkeyState.CONTINUOUS_ACTIVE, Intent.UPGRADE_TO_CONTINUOUS, pressed_at
                )
            return Transition(HotkeyState.IDLE, Intent.STOP, pressed_at)
        return Transition(state, None, pressed_at)

    if key_state == KeyState.DOWN and combo.armed and not combo.space:
        return Transition(HotkeyState.IDLE, Intent.STOP, pressed_at)
    return Transition(state, None, pressed_at)


class HotkeyInterpreter:
    def __init__(
        self,
        modifier_keys: Iterable[str] = DEFAULT_MODIFIER_KEYS,
        short_press_s: float = DEFAULT_SHORT_PRESS_S,
        ctrl_keys: Iterable[str] = CTRL_KEYS,
        space_keys: Iterable[str] = SPACE_KEYS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._modifier_keys = frozenset(modifier_keys)
        self._ctrl_keys = frozenset(ctrl_keys)
        self._space_keys = frozenset(space_keys)
        self.short_press_s = short_press_s
        self._clock = clock
        self._pressed: set[str] = set()
        self._state = HotkeyState.IDLE
        self._pressed_at = 0.0

    @property
    def state(self) -> HotkeyState:
        return self._state

    @property
    def pressed_keys(self) -> frozenset[str]:
        return frozenset(self._pressed)

    def handle_event(
        self, key_name: str, key_state: KeyState, now: Optional[float] = None
    ) -> Optional[Intent]:
        if key_state == KeyState.DOWN:
            self._pressed.add(key_name)
        else:
            self._pressed.discard(key_name)

        result = transition(
            self._state,
            key_state,
            self._combo(),
            self._clock() if now is None else now,
            self._pressed_at,
            self.short_press_s,
        )
        if result.state != self._state:
            logger.debug("hotkey %s -> %s (%s)", self._state.value, result.state.value, result.intent)
        self._state, self._pressed_at = result.state, result.pressed_at
        return result.intent

    def reset(self, clear_keys: bool = True) -> None:
        """Return to IDLE. Keys are kept when the listener itself is still attached."""
        if clear_keys:
            self._pressed.clear()
        self._state = HotkeyState.IDLE
        self._pressed_at = 0.0

    def _combo(self) -> Combo:
        return Combo(
            ctrl=not self._pressed.isdisjoint(self._ctrl_keys),
            modifier=not self._pressed.isdisjoint(self._modifier_keys),
            space=not self._pressed.isdisjoint(self._space_keys),
        )
