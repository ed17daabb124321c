"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class KeyState(str, Enum):
    DOWN = "DOWN"
    UP = "UP"


class HotkeyState(str, Enum):
    IDLE = "IDLE"
    HOLD_ACTIVE = "HOLD_ACTIVE"
    CONTINUOUS_ACTIVE = "CONTINUOUS_ACTIVE"


class Intent(str, Enum):
    START_HOLD = "START_HOLD"
    START_CONTINUOUS = "START_CONTINUOUS"
    UPGRADE_TO_CONTINUOUS = "UPGRADE_TO_CONTINUOUS"
    STOP = "STOP"


class RecordingMode(str, Enum):
    HOLD = "hold"
    CONTINUOUS = "continuous"


class Status(str, Enum):
    RECORDING = "recording"
    PROCESSING = "processing"
    REFINING = "refining"
    DONE = "done"


class CleanupStyle(str, Enum):
    NATURAL = "natural"
    PROFESSIONAL = "professional"
    CASUAL = "casual"
    CONCISE = "concise"

    @classmethod
    def parse(cls, value: str | None) -> "CleanupStyle":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.NATURAL


class ModelTier(str, Enum):
    FAST = "fast"
    QUALITY = "quality"


class JobStatus(str, Enum):
    TRANSCRIBING = "transcribing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass
class RecordingSession:
    started_at: float
    mode: RecordingMode


@dataclass(frozen=True)
class RawCapture:
    audio_bytes: bytes
    duration_seconds: float


@dataclass(frozen=True)
class CleanupConfig:
    enabled: bool = False
    style: CleanupStyle = CleanupStyle.NATURAL
    custom_prompt: str = ""


@dataclass(frozen=True)
class TranscriptionJob:
    raw: RawCapture
    persist_audio: bool = False
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)


@dataclass
class TranscriptResult:
    text: str
    duration_seconds: float
    words_per_minute: float
    audio_path: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class TranscriptRecord:
    id: int
    text: str
    duration: float
    wpm: float
    audio_path: Optional[str]
    created_at: str


@dataclass
class TranscriptStats:
    count: int
    total_duration: float
    avg_wpm: int
    total_words: int


@dataclass
class PasteResult:
    success: bool
    reason: str
    clipboard_restored: bool


def count_words(text: str) -> int:
    return len(text.split())


def words_per_minute(text: str, duration_seconds: float) -> float:
    if duration_seconds <= 0:
        return 0.0
    return count_words(text) / (duration_seconds / 60.0)
