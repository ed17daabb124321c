"""Compact mono archive of a recording, via pydub/ffmpeg."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from errors import TranscodeError

try:
    from pydub import AudioSegment
except Exception:  # pragma: no cover
    AudioSegment = None  # type: ignore

logger = logging.getLogger(__name__)


class PydubTranscoder:
    async def convert(
        self,
        source: Path,
        target: Path,
        target_format: str = "mp3",
        bitrate: str = "192k",
        channels: int = 1,
    ) -> Path:
        if AudioSegment is None:
            raise TranscodeError("pydub is not installed")
        try:
            return await asyncio.to_thread(
                self._convert, source, target, target_format, bitrate, channels
            )
        except TranscodeError:
            raise
        except Exception as exc:
            raise TranscodeError(f"{source.name}: {exc}") from exc

    def _convert(
        self, source: Path, target: Path, target_format: str, bitrate: str, channels: int
    ) -> Path:
        audio = AudioSegment.from_file(str(source))
        if audio.channels != channels:
            audio = audio.set_channels(channels)
        target.parent.mkdir(parents=True, exist_ok=True)
        audio.export(str(target), format=target_format, bitrate=bitrate).close()
        logger.debug("archived %s -> %s", source.name, target)
        return target
