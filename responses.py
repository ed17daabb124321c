"""Helpers for reading DashScope SDK replies (dict-like, ``result_format="message"``)."""

from __future__ import annotations

from errors import classify_remote_exception


def response_status(response: object) -> int:
    status = getattr(response, "status_code", None)
    if status is None and isinstance(response, dict):
        status = response.get("status_code")
    return 200 if status is None else int(status)


def response_error(response: object) -> str:
    message = getattr(response, "message", None)
    if message is None and isinstance(response, dict):
        message = response.get("message")
    return f"{response_status(response)}: {message or 'request failed'}"


def extract_message_text(response: object) -> str:
    """Pull the assistant text out of a DashScope ``result_format="message"`` reply."""
    if not isinstance(response, dict):
        return ""
    output = response.get("output") or {}
    choices = output.get("choices") or []
    if not choices:
        return ""
    message = choices[0].get("message") or {}
    content = message.get("content", "")
    if isinstance(content, str):
        return content
    if not content:
        return ""
    value = content[0]
    if isinstance(value, dict):
        return str(value.get("text", ""))
    return ""


def raise_for_status(response: object) -> None:
    """Raise a classified ``RemoteError`` for any non-200 reply."""
    if response_status(response) != 200:
        raise classify_remote_exception(Exception(response_error(response)))
