"""Microphone recorder adapter."""

from __future__ import annotations

import io
import logging
import threading
import time
import wave
from queue import Empty, Full, Queue
from typing import Any

from errors import PERMISSION_DENIED, CaptureAcquisitionFailure
from models import AudioFrame

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

logger = logging.getLogger(__name__)

# ten minutes of 100 ms chunks
MAX_QUEUED_CHUNKS = 6000


def pcm_to_wav(
    pcm: bytes,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> bytes:
    """Wrap raw PCM bytes in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm)
    return buf.getvalue()


class SoundDeviceRecorder:
    """Captures int16 PCM from the default input device.

    ``start`` opens the stream; ``stop`` closes it and returns everything
    captured since, as WAV bytes.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        queue_maxsize: int = MAX_QUEUED_CHUNKS,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self.dropped_chunks = 0
        self._audio_queue: Queue[AudioFrame] = Queue(maxsize=queue_maxsize)

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise CaptureAcquisitionFailure("sounddevice is not installed")
            self._audio_queue = Queue(maxsize=self._audio_queue.maxsize)
            self.dropped_chunks = 0
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._running = True
            try:
                self._stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    callback=self._on_audio,
                )
                self._stream.start()
            except Exception as exc:
                self._running = False
                self._close_stream()
                code = PERMISSION_DENIED if "permission" in str(exc).lower() else None
                raise CaptureAcquisitionFailure(str(exc), code) from exc

    def stop(self) -> bytes:
        with self._lock:
            if not self._running:
                return b""
            self._running = False
            self._close_stream()
            pcm = self._drain()
        if self.dropped_chunks:
            logger.warning("recorder dropped %d audio chunks", self.dropped_chunks)
        return pcm_to_wav(pcm, self.sample_rate, self.channels)

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
        finally:
            stream.close()

    def _drain(self) -> bytes:
        pcm = bytearray()
        while True:
            try:
                frame = self._audio_queue.get_nowait()
            except Empty:
                break
            pcm.extend(frame.pcm16_bytes)
        return bytes(pcm)

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        if not self._running:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        try:
            self._audio_queue.put_nowait(frame)
        except Full:
            self.dropped_chunks += 1
