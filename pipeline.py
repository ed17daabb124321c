"""Transcription pipeline: remote transcription, optional archive, optional cleanup."""

from __future__ import annotations

import asyncio
import logging
import tempfile
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Mapping, Optional

from errors import TranscriptionFailed, VtalkError
from interfaces import Rewriter, StatusNotifier, Transcoder, Transcriber
from models import (
    CleanupConfig,
    ModelTier,
    Status,
    TranscriptionJob,
    TranscriptResult,
    words_per_minute,
)
from rewriter import build_instruction

logger = logging.getLogger(__name__)

DEFAULT_MODELS = {ModelTier.FAST: "qwen-turbo", ModelTier.QUALITY: "qwen-max"}


@dataclass(frozen=True)
class ArchiveSettings:
    target_format: str = "mp3"
    bitrate: str = "192k"
    channels: int = 1


class TranscriptionPipeline:
    """Runs one ``TranscriptionJob`` to a ``TranscriptResult``.

    Several jobs may run at once; everything a job touches (its cleanup
    snapshot, its temp file, its archive path) is local to that run.
    """

    def __init__(
        self,
        transcriber: Transcriber,
        rewriter: Rewriter,
        transcoder: Transcoder,
        recordings_dir: Path,
        temp_dir: Optional[Path] = None,
        notifier: Optional[StatusNotifier] = None,
        models: Mapping[ModelTier, str] = DEFAULT_MODELS,
        archive: ArchiveSettings = ArchiveSettings(),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._transcriber = transcriber
        self._rewriter = rewriter
        self._transcoder = transcoder
        self.recordings_dir = recordings_dir
        self._temp_dir = temp_dir or Path(tempfile.gettempdir())
        self._notifier = notifier
        self._models = dict(models)
        self._archive_settings = archive
        self._clock = clock
        self._last_stamp = 0

    async def run(self, job: TranscriptionJob) -> TranscriptResult:
        stamp = self._next_stamp()
        temp_path = self._temp_dir / f"vtalk_{stamp}.wav"
        try:
            transcription = self._transcribe(job.raw.audio_bytes)
            if job.persist_audio:
                outcome, audio_path = await asyncio.gather(
                    transcription,
                    self._archive(job.raw.audio_bytes, temp_path, stamp),
                    return_exceptions=True,
                )
            else:
                (outcome,) = await asyncio.gather(transcription, return_exceptions=True)
                audio_path = None

            if isinstance(audio_path, BaseException):
                # _archive handles its own errors; only cancellation lands here
                raise audio_path
            if isinstance(outcome, BaseException):
                self._discard_archive(audio_path)
                raise outcome
            text = outcome

            if job.cleanup.enabled and text.strip():
                self._notify(Status.REFINING)
                text = await self._refine(text, job.cleanup)
        finally:
            temp_path.unlink(missing_ok=True)

        duration = job.raw.duration_seconds
        return TranscriptResult(
            text=text,
            duration_seconds=duration,
            words_per_minute=words_per_minute(text, duration),
            audio_path=audio_path,
            created_at=datetime.now(),
        )

    async def _transcribe(self, audio_bytes: bytes) -> str:
        try:
            return await self._transcriber.transcribe(audio_bytes)
        except VtalkError as exc:
            logger.error("transcription failed: %s", exc)
            raise TranscriptionFailed(exc.message, exc.code) from exc
        except Exception as exc:
            logger.error("transcription failed: %s", exc)
            raise TranscriptionFailed(str(exc)) from exc

    async def _archive(self, audio_bytes: bytes, source: Path, stamp: int) -> Optional[str]:
        settings = self._archive_settings
        target = self.recordings_dir / f"recording_{stamp}.{settings.target_format}"
        try:
            source.write_bytes(audio_bytes)
            self.recordings_dir.mkdir(parents=True, exist_ok=True)
            path = await self._transcoder.convert(
                source, target, settings.target_format, settings.bitrate, settings.channels
            )
        except Exception as exc:
            logger.warning("audio archive failed, continuing without it: %s", exc)
            return None
        return str(path)

    async def _refine(self, text: str, cleanup: CleanupConfig) -> str:
        preset = build_instruction(cleanup)
        model = self._models[preset.tier]
        try:
            return await self._rewriter.rewrite(preset.instruction, text, model)
        except Exception as exc:
            logger.warning("cleanup with %s failed, keeping raw transcript: %s", model, exc)
            return text

    def _discard_archive(self, audio_path: Optional[str]) -> None:
        if not audio_path:
            return
        try:
            Path(audio_path).unlink(missing_ok=True)
        except OSError:
            logger.warning("could not remove orphaned archive %s", audio_path, exc_info=True)

    def _next_stamp(self) -> int:
        """Millisecond timestamp, bumped so that concurrent jobs never share a name."""
        stamp = max(int(self._clock() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp

    def _notify(self, status: Status) -> None:
        if self._notifier is not None:
            self._notifier.notify(status)
