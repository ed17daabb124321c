"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from concurrent.futures import Future
from typing import Any, Coroutine

from auto_paste import ClipboardPasteService
from config import JsonConfigStore
from dictation import DictationService, PendingTranscript
from errors import ERROR_MESSAGES, InputListenerFailure
from hotkey import GlobalKeyListener
from hotkey_interpreter import HotkeyInterpreter
from models import CleanupStyle, JobStatus, KeyState, ModelTier, Status
from overlay import OverlayWindow
from pipeline import ArchiveSettings, TranscriptionPipeline
from recorder import SoundDeviceRecorder
from rewriter import DashscopeRewriter
from session_controller import RecordingSessionController
from store import (
    CLEANUP_CUSTOM_PROMPT,
    CLEANUP_ENABLED,
    CLEANUP_STYLE,
    SAVE_AUDIO,
    SqliteTranscriptStore,
)
from transcoder import PydubTranscoder
from transcriber import DashscopeTranscriber

try:
    from PySide6.QtCore import QObject, QSize, QUrl, Signal
    from PySide6.QtGui import QAction, QActionGroup, QBrush, QColor, QDesktopServices, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger("vtalk")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(config_store: JsonConfigStore) -> None:
    level = getattr(logging, config_store.get_str("log_level").upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        handlers.append(
            logging.FileHandler(config_store.get_data_dir() / "vtalk.log", encoding="utf-8")
        )
    except OSError as exc:
        print(f"file logging disabled: {exc}", file=sys.stderr)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"      # grey
ICON_RECORDING = "#FF4444"  # red
ICON_BUSY = "#3B82F6"      # blue
ICON_ERROR = "#FF8800"     # orange


class UIBridge(QObject):
    status_signal = Signal(str)
    error_signal = Signal(str)
    transcript_signal = Signal(object)


class QtStatusNotifier:
    """Status notifier that hops onto the Qt thread via a signal."""

    def __init__(self, bridge: UIBridge) -> None:
        self._bridge = bridge

    def notify(self, status: Status) -> None:
        self._bridge.status_signal.emit(status.value)


class LoopThread:
    """Runs the dictation event loop in a background daemon thread."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="vtalk-loop", daemon=True)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self) -> None:
        self._thread.start()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Any, *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self, timeout: float = 2.0) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=timeout)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        configure_logging(self.config_store)

        data_dir = self.config_store.get_data_dir()
        self.recordings_dir = data_dir / "recordings"
        self.store = SqliteTranscriptStore(data_dir / "vtalk.db")
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.transcript_signal.connect(self._on_transcript_ui)
        notifier = QtStatusNotifier(self.ui)

        self.loop_thread = LoopThread()
        self.service = DictationService(
            interpreter=HotkeyInterpreter(
                modifier_keys=self.config_store.get_modifier_keys(),
                short_press_s=self.config_store.get_short_press_s(),
            ),
            controller=RecordingSessionController(SoundDeviceRecorder(), notifier=notifier),
            pipeline=self._build_pipeline(notifier),
            paste_service=ClipboardPasteService(
                notifier=notifier,
                settle_delay_s=self.config_store.get_paste_settle_s(),
                restore_delay_s=self.config_store.get_clipboard_restore_s(),
            ),
            store=self.store,
            notifier=notifier,
            on_transcript=self._on_transcript,
            on_error=self._on_error,
            loop=self.loop_thread.loop,
        )
        self.listener = GlobalKeyListener()
        self._listener_error_shown = False

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Vtalk — Ready")
        self._setup_menu()
        self.tray.show()

    def _build_pipeline(self, notifier: QtStatusNotifier) -> TranscriptionPipeline:
        cfg = self.config_store
        return TranscriptionPipeline(
            transcriber=DashscopeTranscriber(
                api_key=cfg.get_api_key, model=cfg.get_str("transcription_model")
            ),
            rewriter=DashscopeRewriter(api_key=cfg.get_api_key),
            transcoder=PydubTranscoder(),
            recordings_dir=self.recordings_dir,
            notifier=notifier,
            models={
                ModelTier.FAST: cfg.get_str("fast_model"),
                ModelTier.QUALITY: cfg.get_str("quality_model"),
            },
            archive=ArchiveSettings(
                target_format=cfg.get_str("archive_format"),
                bitrate=cfg.get_str("archive_bitrate"),
            ),
        )

    def _setup_menu(self) -> None:
        menu = QMenu()

        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        save_audio = QAction("Save Audio", menu)
        save_audio.setCheckable(True)
        save_audio.setChecked(self.store.get_flag(SAVE_AUDIO))
        save_audio.toggled.connect(lambda on: self.store.set_flag(SAVE_AUDIO, on))
        menu.addAction(save_audio)

        cleanup_menu = menu.addMenu("Cleanup")
        cleanup_enabled = QAction("Enabled", cleanup_menu)
        cleanup_enabled.setCheckable(True)
        cleanup_enabled.setChecked(self.store.get_flag(CLEANUP_ENABLED))
        cleanup_enabled.toggled.connect(lambda on: self.store.set_flag(CLEANUP_ENABLED, on))
        cleanup_menu.addAction(cleanup_enabled)
        cleanup_menu.addSeparator()
        current = CleanupStyle.parse(self.store.get_setting(CLEANUP_STYLE))
        group = QActionGroup(cleanup_menu)
        for style in CleanupStyle:
            action = QAction(style.value.capitalize(), cleanup_menu)
            action.setCheckable(True)
            action.setChecked(style == current)
            action.triggered.connect(
                lambda _checked=False, s=style: self.store.set_setting(CLEANUP_STYLE, s.value)
            )
            group.addAction(action)
            cleanup_menu.addAction(action)
        cleanup_menu.addSeparator()
        prompt_action = QAction("Custom Instructions…", cleanup_menu)
        prompt_action.triggered.connect(self._set_custom_prompt)
        cleanup_menu.addAction(prompt_action)

        menu.addSeparator()
        retry_action = QAction("Retry Last", menu)
        retry_action.triggered.connect(self._retry_last)
        menu.addAction(retry_action)

        export_action = QAction("Export Metadata", menu)
        export_action.triggered.connect(self._export_metadata)
        menu.addAction(export_action)

        folder_action = QAction("Open Recordings Folder", menu)
        folder_action.triggered.connect(self._open_recordings_folder)
        menu.addAction(folder_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)
        self._menu = menu

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved and applied.")

    def _set_custom_prompt(self) -> None:
        value, ok = QInputDialog.getMultiLineText(
            None,
            "Cleanup",
            "Extra instructions appended to every cleanup",
            self.store.get_setting(CLEANUP_CUSTOM_PROMPT) or "",
        )
        if ok:
            self.store.set_setting(CLEANUP_CUSTOM_PROMPT, value)

    def _retry_last(self) -> None:
        async def _retry() -> None:
            task = self.service.retry_last()
            if task is None:
                self.ui.error_signal.emit("Nothing to retry yet.")
                return
            await task

        self.loop_thread.submit(_retry())

    def _export_metadata(self) -> None:
        try:
            path = self.store.export_metadata(self.recordings_dir)
        except OSError as exc:
            logger.error("export failed: %s", exc)
            self.overlay.show_error(f"Export failed: {exc}")
            return
        self.tray.showMessage("Vtalk", f"Exported to {path}")

    def _open_recordings_folder(self) -> None:
        self.recordings_dir.mkdir(parents=True, exist_ok=True)
        QDesktopServices.openUrl(QUrl.fromLocalFile(str(self.recordings_dir)))

    # ------------------------------------------------------------------
    # Callbacks (called from the loop thread → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_transcript(self, pending: PendingTranscript) -> None:
        self.ui.transcript_signal.emit(pending)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{ERROR_MESSAGES.get(code, code)} ({message})")

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_status_ui(self, status: str) -> None:
        value = Status(status)
        self.overlay.show_status(value)
        if value == Status.RECORDING:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("Vtalk — Recording...")
        elif value in (Status.PROCESSING, Status.REFINING):
            self.tray.setIcon(_create_icon(ICON_BUSY))
            self.tray.setToolTip("Vtalk — Processing...")
        elif value == Status.DONE:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("Vtalk — Ready")

    def _on_error_ui(self, msg: str) -> None:
        self.tray.setIcon(_create_icon(ICON_ERROR))
        self.overlay.show_error(msg)

    def _on_transcript_ui(self, pending: PendingTranscript) -> None:
        if pending.status == JobStatus.FAILED:
            self.tray.setToolTip("Vtalk — Last transcription failed (Retry Last)")
        elif pending.record is not None:
            stats = self.store.get_stats()
            self.tray.setToolTip(
                f"Vtalk — {stats.count} notes, {stats.total_words} words, {stats.avg_wpm} wpm"
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _on_key(self, key_name: str, key_state: KeyState) -> None:
        self.service.post_key_event(key_name, key_state)

    def run(self) -> int:
        self.loop_thread.start()
        try:
            self.listener.start(self._on_key)
        except InputListenerFailure as exc:
            logger.error("hotkey disabled: %s", exc)
            if not self._listener_error_shown:
                self._listener_error_shown = True
                self.overlay.show_error(f"Hotkey disabled: {exc.message}")
        return self.app.exec()

    def quit(self) -> None:
        self.listener.stop()
        self.loop_thread.call(self.service.reset_input)
        self.loop_thread.stop()
        self.store.close()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
