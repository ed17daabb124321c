"""Transcript cleanup through a DashScope chat model."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, NamedTuple

from errors import AUTH_FAILED, ASR_PROTOCOL_ERROR, RemoteError, classify_remote_exception
from models import CleanupConfig, CleanupStyle, ModelTier
from responses import extract_message_text, raise_for_status

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

_BASE_RULES = (
    "You receive raw speech-to-text output. Return only the rewritten text, "
    "with no preamble, quotes or commentary. Keep the speaker's language and meaning."
)


class CleanupPreset(NamedTuple):
    instruction: str
    tier: ModelTier


CLEANUP_PRESETS: dict[CleanupStyle, CleanupPreset] = {
    CleanupStyle.NATURAL: CleanupPreset(
        _BASE_RULES
        + " Remove filler words (um, uh, like, you know), false starts and stutters. "
        "Fix grammar and punctuation but keep the wording as close to the original as possible.",
        ModelTier.FAST,
    ),
    CleanupStyle.PROFESSIONAL: CleanupPreset(
        _BASE_RULES
        + " Rewrite the text in a clear, polished, professional tone suitable for work "
        "email or documentation. Remove filler words and fix grammar.",
        ModelTier.QUALITY,
    ),
    CleanupStyle.CASUAL: CleanupPreset(
        _BASE_RULES
        + " Rewrite the text in a relaxed, friendly, conversational tone as if messaging "
        "a colleague. Remove filler words and fix obvious grammar mistakes.",
        ModelTier.QUALITY,
    ),
    CleanupStyle.CONCISE: CleanupPreset(
        _BASE_RULES
        + " Make the text as short as possible while keeping every fact and request. "
        "Drop filler, repetition and hedging.",
        ModelTier.FAST,
    ),
}


def build_instruction(cleanup: CleanupConfig) -> CleanupPreset:
    preset = CLEANUP_PRESETS[cleanup.style]
    custom = cleanup.custom_prompt.strip()
    if not custom:
        return preset
    return CleanupPreset(f"{preset.instruction}\n\nAdditional instructions: {custom}", preset.tier)


class DashscopeRewriter:
    def __init__(
        self,
        api_key: str | Callable[[], str],
        request_timeout_s: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._request_timeout_s = request_timeout_s

    @property
    def api_key(self) -> str:
        return self._api_key() if callable(self._api_key) else self._api_key

    async def rewrite(self, system_instruction: str, text: str, model: str) -> str:
        if dashscope is None:
            raise RemoteError("dashscope is not installed", ASR_PROTOCOL_ERROR, retryable=False)
        api_key = self.api_key
        if not api_key:
            raise RemoteError("No API key configured", AUTH_FAILED, retryable=False)

        try:
            response = await asyncio.to_thread(
                dashscope.Generation.call,
                api_key=api_key,
                model=model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": text},
                ],
                result_format="message",
                timeout=self._request_timeout_s,
            )
        except Exception as exc:
            raise classify_remote_exception(exc) from exc

        raise_for_status(response)
        rewritten = extract_message_text(response).strip()
        if not rewritten:
            raise RemoteError("rewrite returned no text", ASR_PROTOCOL_ERROR)
        return rewritten
