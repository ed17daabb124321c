"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

PERMISSION_DENIED = "PERMISSION_DENIED"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
NO_ACTIVE_TARGET = "NO_ACTIVE_TARGET"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
CAPTURE_FAILED = "CAPTURE_FAILED"
TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
LISTENER_FAILED = "LISTENER_FAILED"
TRANSCODE_FAILED = "TRANSCODE_FAILED"

ERROR_MESSAGES = {
    PERMISSION_DENIED: "Microphone or accessibility permission is required.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    NO_ACTIVE_TARGET: "No active input target, result kept in clipboard.",
    ASR_PROTOCOL_ERROR: "ASR response format is invalid.",
    CAPTURE_FAILED: "Microphone is unavailable.",
    TRANSCRIPTION_FAILED: "Transcription failed, use Retry Last to try again.",
    LISTENER_FAILED: "Global hotkey is unavailable.",
    TRANSCODE_FAILED: "Audio could not be archived.",
}


class VtalkError(Exception):
    code = ASR_PROTOCOL_ERROR

    def __init__(self, message: str = "", code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or ERROR_MESSAGES.get(self.code, self.code)
        super().__init__(self.message)


class InputListenerFailure(VtalkError):
    code = LISTENER_FAILED


class CaptureAcquisitionFailure(VtalkError):
    code = CAPTURE_FAILED


class RemoteError(VtalkError):
    def __init__(self, message: str = "", code: str | None = None, retryable: bool = True) -> None:
        super().__init__(message, code)
        self.retryable = retryable


class TranscriptionFailed(VtalkError):
    code = TRANSCRIPTION_FAILED


class TranscodeError(VtalkError):
    code = TRANSCODE_FAILED


class PasteInjectionFailure(VtalkError):
    code = NO_ACTIVE_TARGET


def classify_remote_exception(exc: Exception) -> RemoteError:
    """Map an SDK/network exception to a RemoteError with a standard code."""
    if isinstance(exc, RemoteError):
        return exc
    message = str(exc)
    low = message.lower()
    if "401" in low or "auth" in low or "api key" in low:
        return RemoteError(message, AUTH_FAILED, retryable=False)
    if "timeout" in low or "network" in low or "connection" in low:
        return RemoteError(message, NETWORK_ERROR, retryable=True)
    return RemoteError(message, ASR_PROTOCOL_ERROR, retryable=True)
