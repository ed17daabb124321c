"""End-to-end tests for DictationService with fake adapters."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from dictation import DictationService, PendingTranscript
from errors import CAPTURE_FAILED, NETWORK_ERROR, CaptureAcquisitionFailure, TranscriptionFailed
from hotkey_interpreter import HotkeyInterpreter
from models import (
    CleanupStyle,
    HotkeyState,
    JobStatus,
    KeyState,
    PasteResult,
    RawCapture,
    Status,
    TranscriptionJob,
    TranscriptResult,
    words_per_minute,
)
from session_controller import RecordingSessionController
from store import CLEANUP_CUSTOM_PROMPT, CLEANUP_ENABLED, CLEANUP_STYLE, SAVE_AUDIO, SqliteTranscriptStore

CTRL = "Key.ctrl_l"
ALT = "Key.alt_l"
SPACE = "Key.space"


# ---------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------

class FakeClock:
    def __init__(self) -> None:
        self.now = 10.0

    def __call__(self) -> float:
        return self.now


class FakeRecorder:
    def __init__(self) -> None:
        self.fail_next = False
        self.starts = 0

    def start(self) -> None:
        if self.fail_next:
            self.fail_next = False
            raise CaptureAcquisitionFailure("device busy")
        self.starts += 1

    def stop(self) -> bytes:
        return b"RIFF-audio"


class FakePipeline:
    def __init__(self, text: str = "hello world", error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.jobs: list[TranscriptionJob] = []

    async def run(self, job: TranscriptionJob) -> TranscriptResult:
        self.jobs.append(job)
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        duration = job.raw.duration_seconds
        return TranscriptResult(
            text=self.text,
            duration_seconds=duration,
            words_per_minute=words_per_minute(self.text, duration),
        )


class FakePasteService:
    def __init__(self, success: bool = True) -> None:
        self.success = success
        self.pasted: list[str] = []

    async def paste_text(self, text: str) -> PasteResult:
        self.pasted.append(text)
        return PasteResult(success=self.success, reason="ok", clipboard_restored=self.success)


class FakeNotifier:
    def __init__(self) -> None:
        self.statuses: list[Status] = []

    def notify(self, status: Status) -> None:
        self.statuses.append(status)


class Harness:
    def __init__(self, tmp_path: Path, pipeline: FakePipeline | None = None, paste_ok: bool = True) -> None:
        self.clock = FakeClock()
        self.recorder = FakeRecorder()
        self.notifier = FakeNotifier()
        self.pipeline = pipeline or FakePipeline()
        self.paste = FakePasteService(paste_ok)
        self.store = SqliteTranscriptStore(tmp_path / "vtalk.db")
        self.transcripts: list[PendingTranscript] = []
        self.errors: list[tuple[str, str]] = []
        self.service = DictationService(
            interpreter=HotkeyInterpreter(clock=self.clock),
            controller=RecordingSessionController(self.recorder, notifier=self.notifier, clock=self.clock),
            pipeline=self.pipeline,
            paste_service=self.paste,
            store=self.store,
            notifier=self.notifier,
            on_transcript=self.transcripts.append,
            on_error=lambda code, msg: self.errors.append((code, msg)),
        )

    def press(self, *keys: str) -> None:
        for key in keys:
            self.service.handle_key_event(key, KeyState.DOWN)

    def release(self, *keys: str) -> None:
        for key in keys:
            self.service.handle_key_event(key, KeyState.UP)


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    h = Harness(tmp_path)
    yield h
    h.store.close()


# ---------------------------------------------------------------
# Full flow
# ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_hold_to_talk_transcribes_saves_and_pastes(harness: Harness) -> None:
    harness.press(CTRL, ALT)
    assert harness.service.interpreter.state == HotkeyState.HOLD_ACTIVE
    harness.clock.now += 3.0
    harness.release(ALT)

    await harness.service.drain()

    assert harness.paste.pasted == ["hello world"]
    records = harness.store.get_transcripts()
    assert [r.text for r in records] == ["hello world"]
    assert records[0].duration == 3.0
    assert harness.pipeline.jobs[0].raw == RawCapture(b"RIFF-audio", 3.0)
    assert [t.status for t in harness.transcripts] == [JobStatus.TRANSCRIBING, JobStatus.SUCCESS]
    assert harness.transcripts[-1].record.id == records[0].id
    assert harness.notifier.statuses == [Status.RECORDING, Status.PROCESSING]
    assert harness.errors == []


@pytest.mark.asyncio
async def test_tap_then_combo_records_continuously(harness: Harness) -> None:
    harness.press(CTRL, ALT)
    harness.clock.now += 0.1
    harness.release(ALT, CTRL)
    assert harness.service.controller.is_recording is True

    harness.clock.now += 5.0
    harness.press(CTRL, ALT)
    await harness.service.drain()

    assert harness.service.interpreter.state == HotkeyState.IDLE
    assert harness.pipeline.jobs[0].raw.duration_seconds == pytest.approx(5.1)
    assert len(harness.paste.pasted) == 1


@pytest.mark.asyncio
async def test_capture_failure_resets_input_and_reports(harness: Harness) -> None:
    harness.recorder.fail_next = True

    harness.press(CTRL, ALT)

    assert harness.service.interpreter.state == HotkeyState.IDLE
    assert harness.service.controller.is_recording is False
    assert harness.errors == [(CAPTURE_FAILED, "device busy")]

    # releasing and pressing again starts a fresh session
    harness.release(ALT)
    harness.press(ALT)
    assert harness.service.controller.is_recording is True


@pytest.mark.asyncio
async def test_transcription_failure_marks_job_failed(tmp_path: Path) -> None:
    pipeline = FakePipeline(error=TranscriptionFailed("timed out", NETWORK_ERROR))
    h = Harness(tmp_path, pipeline=pipeline)

    record = await h.service.process(h.service.snapshot_job(RawCapture(b"a", 1.0)))

    assert record is None
    assert h.transcripts[-1].status == JobStatus.FAILED
    assert h.transcripts[-1].error == "timed out"
    assert h.errors == [(NETWORK_ERROR, "timed out")]
    assert h.paste.pasted == []
    assert h.store.get_transcripts() == []
    h.store.close()


@pytest.mark.asyncio
async def test_blank_transcript_is_not_saved_or_pasted(tmp_path: Path) -> None:
    h = Harness(tmp_path, pipeline=FakePipeline(text="  "))

    await h.service.process(h.service.snapshot_job(RawCapture(b"a", 1.0)))

    assert h.paste.pasted == []
    assert h.store.get_transcripts() == []
    assert h.transcripts[-1].status == JobStatus.SUCCESS
    assert h.notifier.statuses == [Status.DONE]
    h.store.close()


@pytest.mark.asyncio
async def test_paste_failure_still_saves_transcript(tmp_path: Path) -> None:
    h = Harness(tmp_path, paste_ok=False)

    record = await h.service.process(h.service.snapshot_job(RawCapture(b"a", 2.0)))

    assert record is not None
    assert h.store.get_transcript(record.id).text == "hello world"
    assert h.errors == []
    h.store.close()


# ---------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_job_snapshots_settings_at_submit_time(harness: Harness) -> None:
    harness.store.set_flag(SAVE_AUDIO, True)
    harness.store.set_flag(CLEANUP_ENABLED, True)
    harness.store.set_setting(CLEANUP_STYLE, "professional")
    harness.store.set_setting(CLEANUP_CUSTOM_PROMPT, "No emoji.")

    task = harness.service.submit(RawCapture(b"a", 1.0))
    harness.store.set_flag(SAVE_AUDIO, False)
    await task

    job = harness.pipeline.jobs[0]
    assert job.persist_audio is True
    assert job.cleanup.enabled is True
    assert job.cleanup.style == CleanupStyle.PROFESSIONAL
    assert job.cleanup.custom_prompt == "No emoji."


@pytest.mark.asyncio
async def test_default_settings_produce_plain_job(harness: Harness) -> None:
    job = harness.service.snapshot_job(RawCapture(b"a", 1.0))

    assert job.persist_audio is False
    assert job.cleanup.enabled is False
    assert job.cleanup.style == CleanupStyle.NATURAL


@pytest.mark.asyncio
async def test_jobs_run_independently(harness: Harness) -> None:
    harness.service.submit(RawCapture(b"one", 1.0))
    harness.service.submit(RawCapture(b"two", 2.0))

    await harness.service.drain()

    assert len(harness.store.get_transcripts()) == 2
    assert len(harness.paste.pasted) == 2
    job_ids = {t.job_id for t in harness.transcripts}
    assert len(job_ids) == 2


@pytest.mark.asyncio
async def test_retry_last_resubmits_previous_capture(harness: Harness) -> None:
    assert harness.service.retry_last() is None

    capture = RawCapture(b"again", 4.0)
    await harness.service.submit(capture)
    await harness.service.retry_last()

    assert [job.raw for job in harness.pipeline.jobs] == [capture, capture]


@pytest.mark.asyncio
async def test_post_key_event_marshals_onto_loop(harness: Harness) -> None:
    harness.service.attach_loop(asyncio.get_running_loop())

    harness.service.post_key_event(CTRL, KeyState.DOWN)
    harness.service.post_key_event(ALT, KeyState.DOWN)
    assert harness.service.controller.is_recording is False

    await asyncio.sleep(0)
    assert harness.service.controller.is_recording is True


def test_post_key_event_requires_loop(harness: Harness) -> None:
    with pytest.raises(RuntimeError):
        harness.service.post_key_event(CTRL, KeyState.DOWN)


@pytest.mark.asyncio
async def test_reset_input_cancels_active_session(harness: Harness) -> None:
    harness.press(CTRL, ALT)

    harness.service.reset_input()

    assert harness.service.interpreter.state == HotkeyState.IDLE
    assert harness.service.controller.is_recording is False
    assert harness.pipeline.jobs == []


@pytest.mark.asyncio
async def test_stop_failure_is_surfaced_and_input_recovers(harness: Harness) -> None:
    harness.press(CTRL, ALT)
    harness.clock.now += 2.0

    def _broken_stop() -> bytes:
        raise RuntimeError("PortAudio: stream stop failed")

    harness.recorder.stop = _broken_stop
    harness.release(ALT)

    assert harness.errors == [(CAPTURE_FAILED, "PortAudio: stream stop failed")]
    assert harness.notifier.statuses == [Status.RECORDING, Status.DONE]
    assert harness.service.interpreter.state == HotkeyState.IDLE
    assert harness.service.controller.is_recording is False
    assert harness.pipeline.jobs == []

    harness.press(ALT)
    assert harness.service.controller.is_recording is True
