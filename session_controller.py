"""Owns the exclusive microphone capture session."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from errors import CaptureAcquisitionFailure
from interfaces import Recorder, StatusNotifier
from models import Intent, RawCapture, RecordingMode, RecordingSession, Status

logger = logging.getLogger(__name__)


class RecordingSessionController:
    def __init__(
        self,
        recorder: Recorder,
        notifier: Optional[StatusNotifier] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._recorder = recorder
        self._notifier = notifier
        self._clock = clock
        self._session: Optional[RecordingSession] = None

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._session is not None

    def on_intent(self, intent: Optional[Intent]) -> Optional[RawCapture]:
        """Apply one intent. Returns the capture when a session was closed.

        Raises ``CaptureAcquisitionFailure`` if the microphone cannot be
        opened or closed; no session is left behind in either case.
        """
        if intent in (Intent.START_HOLD, Intent.START_CONTINUOUS):
            mode = RecordingMode.CONTINUOUS if intent == Intent.START_CONTINUOUS else RecordingMode.HOLD
            self._start(mode)
        elif intent == Intent.UPGRADE_TO_CONTINUOUS:
            if self._session is not None and self._session.mode != RecordingMode.CONTINUOUS:
                self._session.mode = RecordingMode.CONTINUOUS
                logger.info("recording mode upgraded: continuous")
        elif intent == Intent.STOP:
            return self._stop()
        return None

    def cancel(self) -> None:
        """Close capture and drop the session without producing a capture."""
        if self._session is None:
            return
        self._session = None
        try:
            self._recorder.stop()
        except Exception:
            logger.warning("recorder failed to stop during cancel", exc_info=True)

    def _start(self, mode: RecordingMode) -> None:
        if self._session is not None:
            return
        try:
            self._recorder.start()
        except CaptureAcquisitionFailure:
            raise
        except Exception as exc:
            raise CaptureAcquisitionFailure(str(exc)) from exc
        self._session = RecordingSession(started_at=self._clock(), mode=mode)
        logger.info("recording started (%s)", mode.value)
        self._notify(Status.RECORDING)

    def _stop(self) -> Optional[RawCapture]:
        session = self._session
        if session is None:
            return None
        self._session = None
        try:
            audio_bytes = self._recorder.stop()
        except CaptureAcquisitionFailure:
            raise
        except Exception as exc:
            logger.error("recorder failed to stop, capture lost: %s", exc)
            raise CaptureAcquisitionFailure(str(exc)) from exc
        duration = max(0.0, self._clock() - session.started_at)
        logger.info("recording stopped after %.2fs", duration)
        self._notify(Status.PROCESSING)
        return RawCapture(audio_bytes=audio_bytes, duration_seconds=duration)

    def _notify(self, status: Status) -> None:
        if self._notifier is not None:
            self._notifier.notify(status)
