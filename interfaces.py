"""Protocol interfaces for the collaborators of the dictation core."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Protocol

from models import Status, TranscriptRecord, TranscriptStats


class Recorder(Protocol):
    def start(self) -> None: ...

    def stop(self) -> bytes: ...


class Transcriber(Protocol):
    async def transcribe(self, audio_bytes: bytes) -> str: ...


class Rewriter(Protocol):
    async def rewrite(self, system_instruction: str, text: str, model: str) -> str: ...


class Transcoder(Protocol):
    async def convert(
        self,
        source: Path,
        target: Path,
        target_format: str,
        bitrate: str,
        channels: int,
    ) -> Path: ...


class ClipboardFacility(Protocol):
    def read_clipboard(self) -> str: ...

    def write_clipboard(self, text: str) -> None: ...

    def inject_paste_keystroke(self) -> None: ...


class StatusNotifier(Protocol):
    def notify(self, status: Status) -> None: ...


class TranscriptRepository(Protocol):
    def save_transcript(
        self, text: str, duration: float, audio_path: Optional[str] = None
    ) -> TranscriptRecord: ...

    def get_transcripts(self, limit: int = 50, offset: int = 0) -> list[TranscriptRecord]: ...

    def iter_transcripts(self) -> Iterator[TranscriptRecord]: ...

    def get_stats(self) -> TranscriptStats: ...

    def delete_transcript(self, transcript_id: int) -> None: ...

    def get_setting(self, key: str) -> Optional[str]: ...

    def set_setting(self, key: str, value: str) -> None: ...

