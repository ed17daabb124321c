from __future__ import annotations

import random

import pytest

from hotkey_interpreter import Combo, HotkeyInterpreter, transition
from models import HotkeyState, Intent, KeyState, RecordingMode
from session_controller import RecordingSessionController

CTRL = "Key.ctrl_l"
ALT = "Key.alt_l"
SPACE = "Key.space"
DOWN = KeyState.DOWN
UP = KeyState.UP


def _press(interp: HotkeyInterpreter, *keys: str, at: float) -> list[Intent | None]:
    return [interp.handle_event(k, DOWN, now=at) for k in keys]


def test_hold_then_release_after_threshold_stops() -> None:
    interp = HotkeyInterpreter()

    assert _press(interp, CTRL, ALT, at=0.0) == [None, Intent.START_HOLD]
    assert interp.state == HotkeyState.HOLD_ACTIVE

    assert interp.handle_event(ALT, UP, now=0.5) == Intent.STOP
    assert interp.state == HotkeyState.IDLE


def test_quick_tap_switches_to_continuous_without_stop() -> None:
    interp = HotkeyInterpreter()

    assert _press(interp, CTRL, ALT, at=0.0)[-1] == Intent.START_HOLD
    intent = interp.handle_event(ALT, UP, now=0.1)

    assert intent != Intent.STOP
    assert interp.state == HotkeyState.CONTINUOUS_ACTIVE

    interp.handle_event(CTRL, UP, now=0.2)
    assert _press(interp, CTRL, ALT, at=2.0) == [None, Intent.STOP]
    assert interp.state == HotkeyState.IDLE


def test_space_mid_hold_upgrades_to_continuous() -> None:
    interp = HotkeyInterpreter()

    _press(interp, CTRL, ALT, at=0.0)
    assert interp.handle_event(SPACE, DOWN, now=0.05) == Intent.UPGRADE_TO_CONTINUOUS
    assert interp.state == HotkeyState.CONTINUOUS_ACTIVE

    assert interp.handle_event(ALT, UP, now=1.0) is None
    assert interp.handle_event(SPACE, UP, now=1.1) is None
    assert interp.handle_event(CTRL, UP, now=1.2) is None
    assert interp.state == HotkeyState.CONTINUOUS_ACTIVE


def test_combo_with_space_starts_continuous() -> None:
    interp = HotkeyInterpreter()

    assert _press(interp, CTRL, SPACE, ALT, at=0.0) == [None, None, Intent.START_CONTINUOUS]
    assert interp.state == HotkeyState.CONTINUOUS_ACTIVE

    # combo pressed again while space is still held does not stop
    for key in (CTRL, SPACE, ALT):
        interp.handle_event(key, UP, now=1.0)
    interp.handle_event(SPACE, DOWN, now=2.0)
    assert _press(interp, CTRL, ALT, at=2.1) == [None, None]

    interp.handle_event(SPACE, UP, now=2.2)
    interp.handle_event(ALT, UP, now=2.3)
    assert interp.handle_event(ALT, DOWN, now=2.4) == Intent.STOP


def test_right_hand_keys_count_as_combo() -> None:
    interp = HotkeyInterpreter()
    assert _press(interp, "Key.ctrl_r", "Key.alt_r", at=0.0)[-1] == Intent.START_HOLD


def test_configurable_modifier() -> None:
    interp = HotkeyInterpreter(modifier_keys=["Key.shift"])

    assert _press(interp, CTRL, ALT, at=0.0) == [None, None]
    assert interp.handle_event("Key.shift", DOWN, now=0.0) == Intent.START_HOLD


def test_configurable_short_press_threshold() -> None:
    interp = HotkeyInterpreter(short_press_s=1.0)

    _press(interp, CTRL, ALT, at=0.0)
    interp.handle_event(ALT, UP, now=0.5)

    assert interp.state == HotkeyState.CONTINUOUS_ACTIVE


def test_unrelated_keys_only_update_key_set() -> None:
    interp = HotkeyInterpreter()

    assert interp.handle_event("'a'", DOWN, now=0.0) is None
    assert interp.pressed_keys == frozenset({"'a'"})
    assert interp.handle_event("'a'", UP, now=0.1) is None
    assert interp.pressed_keys == frozenset()
    assert interp.state == HotkeyState.IDLE


def test_reset_clears_keys_and_state() -> None:
    interp = HotkeyInterpreter()
    _press(interp, CTRL, ALT, at=0.0)

    interp.reset()

    assert interp.state == HotkeyState.IDLE
    assert interp.pressed_keys == frozenset()


def test_reset_can_keep_held_keys() -> None:
    interp = HotkeyInterpreter()
    _press(interp, CTRL, ALT, at=0.0)

    interp.reset(clear_keys=False)

    assert interp.state == HotkeyState.IDLE
    assert interp.pressed_keys == frozenset({CTRL, ALT})


@pytest.mark.parametrize(
    "state, key_state, combo, expected",
    [
        (HotkeyState.IDLE, UP, Combo(True, True, False), (HotkeyState.IDLE, None)),
        (HotkeyState.IDLE, DOWN, Combo(True, False, True), (HotkeyState.IDLE, None)),
        (HotkeyState.HOLD_ACTIVE, DOWN, Combo(True, True, False), (HotkeyState.HOLD_ACTIVE, None)),
        (HotkeyState.HOLD_ACTIVE, UP, Combo(True, True, True), (HotkeyState.HOLD_ACTIVE, None)),
        (HotkeyState.CONTINUOUS_ACTIVE, UP, Combo(False, False, False), (HotkeyState.CONTINUOUS_ACTIVE, None)),
        (HotkeyState.CONTINUOUS_ACTIVE, DOWN, Combo(True, True, True), (HotkeyState.CONTINUOUS_ACTIVE, None)),
    ],
)
def test_transition_no_op_cases(state, key_state, combo, expected) -> None:  # noqa: ANN001
    result = transition(state, key_state, combo, now=10.0, pressed_at=0.0)
    assert (result.state, result.intent) == expected


class _CountingRecorder:
    def __init__(self) -> None:
        self.open = 0
        self.max_open = 0

    def start(self) -> None:
        self.open += 1
        self.max_open = max(self.max_open, self.open)

    def stop(self) -> bytes:
        self.open -= 1
        return b"audio"


@pytest.mark.parametrize("seed", range(25))
def test_random_sequences_never_open_two_sessions(seed: int) -> None:
    rng = random.Random(seed)
    keys = [CTRL, "Key.ctrl_r", ALT, "Key.alt_r", SPACE, "'a'"]
    interp = HotkeyInterpreter()
    recorder = _CountingRecorder()
    controller = RecordingSessionController(recorder)
    now = 0.0

    for _ in range(400):
        now += rng.choice([0.01, 0.05, 0.2, 0.5])
        intent = interp.handle_event(rng.choice(keys), rng.choice([DOWN, UP]), now=now)
        controller.on_intent(intent)

        assert recorder.open in (0, 1)
        assert controller.is_recording == (interp.state != HotkeyState.IDLE)

    assert recorder.max_open <= 1


def test_quick_tap_upgrade_only_retags_the_open_session() -> None:
    interp = HotkeyInterpreter()
    recorder = _CountingRecorder()
    controller = RecordingSessionController(recorder)

    for intent in _press(interp, CTRL, ALT, at=0.0):
        controller.on_intent(intent)
    started_at = controller.session.started_at
    intent = interp.handle_event(ALT, UP, now=0.1)
    assert intent == Intent.UPGRADE_TO_CONTINUOUS
    assert controller.on_intent(intent) is None

    assert recorder.open == 1
    assert recorder.max_open == 1
    assert controller.session.mode == RecordingMode.CONTINUOUS
    assert controller.session.started_at == started_at
