"""Dictation orchestration on a single asyncio event loop.

Key events arrive from the listener thread and are marshalled onto the loop;
from there on, the interpreter, the capture session, every transcription job
and the paste all run on that one loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from auto_paste import ClipboardPasteService
from errors import CaptureAcquisitionFailure, TranscriptionFailed
from hotkey_interpreter import HotkeyInterpreter
from interfaces import StatusNotifier, TranscriptRepository
from models import (
    CleanupConfig,
    CleanupStyle,
    Intent,
    JobStatus,
    KeyState,
    PasteResult,
    RawCapture,
    Status,
    TranscriptionJob,
    TranscriptRecord,
    TranscriptResult,
)
from pipeline import TranscriptionPipeline
from session_controller import RecordingSessionController
from store import CLEANUP_CUSTOM_PROMPT, CLEANUP_ENABLED, CLEANUP_STYLE, SAVE_AUDIO

logger = logging.getLogger(__name__)


@dataclass
class PendingTranscript:
    job_id: int
    duration: float
    status: JobStatus = JobStatus.TRANSCRIBING
    record: Optional[TranscriptRecord] = None
    error: str = ""


TranscriptCallback = Callable[[PendingTranscript], None]
ErrorCallback = Callable[[str, str], None]


class DictationService:
    def __init__(
        self,
        interpreter: HotkeyInterpreter,
        controller: RecordingSessionController,
        pipeline: TranscriptionPipeline,
        paste_service: ClipboardPasteService,
        store: TranscriptRepository,
        notifier: Optional[StatusNotifier] = None,
        on_transcript: Optional[TranscriptCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._interpreter = interpreter
        self._controller = controller
        self._pipeline = pipeline
        self._paste_service = paste_service
        self._store = store
        self._notifier = notifier
        self._on_transcript = on_transcript
        self._on_error = on_error
        self._loop = loop
        self._job_ids = itertools.count(1)
        self._tasks: set[asyncio.Task] = set()
        self.last_capture: Optional[RawCapture] = None

    @property
    def interpreter(self) -> HotkeyInterpreter:
        return self._interpreter

    @property
    def controller(self) -> RecordingSessionController:
        return self._controller

    def attach_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def post_key_event(self, key_name: str, key_state: KeyState) -> None:
        """Thread-safe entry point for the global key listener."""
        if self._loop is None:
            raise RuntimeError("no event loop attached")
        self._loop.call_soon_threadsafe(self.handle_key_event, key_name, key_state)

    def handle_key_event(self, key_name: str, key_state: KeyState) -> None:
        intent = self._interpreter.handle_event(key_name, key_state)
        if intent is None:
            return
        try:
            capture = self._controller.on_intent(intent)
        except CaptureAcquisitionFailure as exc:
            if intent == Intent.STOP:
                logger.error("could not finish recording: %s", exc)
                self._notify(Status.DONE)
            else:
                logger.error("could not start recording: %s", exc)
            self._interpreter.reset(clear_keys=False)
            self._emit_error(exc.code, exc.message)
            return
        if capture is not None:
            self.submit(capture)

    def reset_input(self) -> None:
        self._interpreter.reset()
        self._controller.cancel()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def submit(self, capture: RawCapture) -> asyncio.Task:
        """Start an independent transcription job for ``capture``."""
        self.last_capture = capture
        job = self.snapshot_job(capture)
        task = asyncio.get_running_loop().create_task(self.process(job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def retry_last(self) -> Optional[asyncio.Task]:
        if self.last_capture is None:
            return None
        logger.info("retrying last recording (%.1fs)", self.last_capture.duration_seconds)
        return self.submit(self.last_capture)

    def snapshot_job(self, capture: RawCapture) -> TranscriptionJob:
        cleanup = CleanupConfig(
            enabled=self._flag(CLEANUP_ENABLED),
            style=CleanupStyle.parse(self._store.get_setting(CLEANUP_STYLE)),
            custom_prompt=self._store.get_setting(CLEANUP_CUSTOM_PROMPT) or "",
        )
        return TranscriptionJob(raw=capture, persist_audio=self._flag(SAVE_AUDIO), cleanup=cleanup)

    async def process(self, job: TranscriptionJob) -> Optional[TranscriptRecord]:
        pending = PendingTranscript(job_id=next(self._job_ids), duration=job.raw.duration_seconds)
        self._emit_transcript(pending)
        try:
            result = await self._pipeline.run(job)
        except TranscriptionFailed as exc:
            pending.status = JobStatus.FAILED
            pending.error = exc.message
            self._emit_transcript(pending)
            self._emit_error(exc.code, exc.message)
            return None

        if not result.text.strip():
            logger.info("transcription came back empty, nothing to paste")
            pending.status = JobStatus.SUCCESS
            self._emit_transcript(pending)
            self._notify(Status.DONE)
            return None

        saved, _ = await asyncio.gather(
            self._save(pending, result),
            self._paste(result.text),
        )
        return saved

    async def drain(self) -> None:
        """Wait for every in-flight job."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _save(self, pending: PendingTranscript, result: TranscriptResult) -> Optional[TranscriptRecord]:
        try:
            record = self._store.save_transcript(
                result.text, result.duration_seconds, result.audio_path
            )
        except Exception as exc:
            logger.error("could not save transcript: %s", exc, exc_info=True)
            pending.status = JobStatus.FAILED
            pending.error = str(exc)
            self._emit_transcript(pending)
            return None
        pending.status = JobStatus.SUCCESS
        pending.record = record
        self._emit_transcript(pending)
        return record

    async def _paste(self, text: str) -> PasteResult:
        result = await self._paste_service.paste_text(text)
        if not result.success:
            logger.info("auto paste skipped: %s", result.reason)
        return result

    def _flag(self, key: str) -> bool:
        return (self._store.get_setting(key) or "").strip().lower() == "true"

    def _emit_transcript(self, pending: PendingTranscript) -> None:
        if self._on_transcript:
            self._on_transcript(replace(pending))

    def _emit_error(self, code: str, message: str) -> None:
        if self._on_error:
            self._on_error(code, message)

    def _notify(self, status: Status) -> None:
        if self._notifier is not None:
            self._notifier.notify(status)
