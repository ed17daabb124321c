"""Auto paste service: clipboard swap, synthetic paste keystroke, clipboard restore."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

from errors import NO_ACTIVE_TARGET, PasteInjectionFailure
from interfaces import ClipboardFacility, StatusNotifier
from models import PasteResult, Status

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore

logger = logging.getLogger(__name__)


class _PynputClipboard:
    """pyperclip for the clipboard, pynput for the <modifier>+V chord."""

    modifier_name = "ctrl"

    def __init__(self) -> None:
        self._keyboard: Optional[object] = None

    def read_clipboard(self) -> str:
        if pyperclip is None:
            raise PasteInjectionFailure("pyperclip is not installed")
        return pyperclip.paste() or ""

    def write_clipboard(self, text: str) -> None:
        if pyperclip is None:
            raise PasteInjectionFailure("pyperclip is not installed")
        pyperclip.copy(text)

    def inject_paste_keystroke(self) -> None:
        if Controller is None or Key is None:
            raise PasteInjectionFailure("pynput is not installed")
        if self._keyboard is None:
            self._keyboard = Controller()
        modifier = getattr(Key, self.modifier_name)
        try:
            with self._keyboard.pressed(modifier):
                self._keyboard.press("v")
                self._keyboard.release("v")
        except Exception as exc:
            raise PasteInjectionFailure(str(exc)) from exc


class MacClipboard(_PynputClipboard):
    modifier_name = "cmd"


class WindowsClipboard(_PynputClipboard):
    modifier_name = "ctrl"


class LinuxClipboard(_PynputClipboard):
    modifier_name = "ctrl"


def clipboard_for_platform(platform: str = sys.platform) -> ClipboardFacility:
    if platform == "darwin":
        return MacClipboard()
    if platform.startswith("win"):
        return WindowsClipboard()
    return LinuxClipboard()


class ClipboardPasteService:
    """Pastes text into the focused application without losing the user's clipboard.

    If the user copies something else during the restore window, the restore
    overwrites it.
    """

    def __init__(
        self,
        clipboard: Optional[ClipboardFacility] = None,
        notifier: Optional[StatusNotifier] = None,
        settle_delay_s: float = 0.1,
        restore_delay_s: float = 1.0,
    ) -> None:
        self._clipboard = clipboard or clipboard_for_platform()
        self._notifier = notifier
        self._settle_delay_s = settle_delay_s
        self._restore_delay_s = restore_delay_s

    async def paste_text(self, text: str) -> PasteResult:
        if not text.strip():
            return PasteResult(success=False, reason="empty text", clipboard_restored=True)

        try:
            old_clip: Optional[str] = self._clipboard.read_clipboard()
        except Exception as exc:
            logger.warning("could not read clipboard before paste: %s", exc)
            old_clip = None
        try:
            self._clipboard.write_clipboard(text)
        except Exception as exc:
            logger.warning("could not stage text on clipboard: %s", exc)
            self._notify(Status.DONE)
            return PasteResult(success=False, reason=str(exc), clipboard_restored=True)
        self._notify(Status.DONE)

        await asyncio.sleep(self._settle_delay_s)
        try:
            self._clipboard.inject_paste_keystroke()
        except Exception as exc:
            # text stays on the clipboard for a manual paste
            logger.warning("paste keystroke failed, text left on clipboard: %s", exc)
            return PasteResult(
                success=False,
                reason=f"{NO_ACTIVE_TARGET}: {exc}",
                clipboard_restored=False,
            )

        await asyncio.sleep(self._restore_delay_s)
        restored = self._restore(old_clip)
        return PasteResult(success=True, reason="ok", clipboard_restored=restored)

    def _restore(self, old_clip: Optional[str]) -> bool:
        if old_clip is None:
            return False
        try:
            self._clipboard.write_clipboard(old_clip)
        except Exception as exc:
            logger.warning("could not restore clipboard: %s", exc)
            return False
        return True

    def _notify(self, status: Status) -> None:
        if self._notifier is not None:
            self._notifier.notify(status)
