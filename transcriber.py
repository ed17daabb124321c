"""Remote transcription using DashScope qwen3-asr-flash.

The model accepts complete audio as a base64 data URI. The SDK call is
blocking, so it runs in the default executor and the caller just awaits it.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Callable

from errors import AUTH_FAILED, ASR_PROTOCOL_ERROR, RemoteError, classify_remote_exception
from responses import extract_message_text, raise_for_status

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)


def wav_to_data_uri(wav_bytes: bytes) -> str:
    return "data:audio/wav;base64," + base64.b64encode(wav_bytes).decode("ascii")


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str | Callable[[], str],
        model: str = "qwen3-asr-flash",
        request_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._request_timeout_s = request_timeout_s

    @property
    def api_key(self) -> str:
        return self._api_key() if callable(self._api_key) else self._api_key

    async def transcribe(self, audio_bytes: bytes) -> str:
        if dashscope is None:
            raise RemoteError("dashscope is not installed", ASR_PROTOCOL_ERROR, retryable=False)
        api_key = self.api_key
        if not api_key:
            raise RemoteError("No API key configured", AUTH_FAILED, retryable=False)

        try:
            response = await asyncio.to_thread(self._call, api_key, wav_to_data_uri(audio_bytes))
        except Exception as exc:
            raise classify_remote_exception(exc) from exc

        raise_for_status(response)
        text = extract_message_text(response).strip()
        logger.debug("transcribed %d bytes into %d chars", len(audio_bytes), len(text))
        return text

    def _call(self, api_key: str, audio: str) -> object:
        return dashscope.MultiModalConversation.call(
            api_key=api_key,
            model=self._model,
            messages=[
                {"role": "system", "content": [{"text": ""}]},
                {"role": "user", "content": [{"audio": audio}]},
            ],
            result_format="message",
            asr_options={"enable_itn": True},
            timeout=self._request_timeout_s,
        )
