from __future__ import annotations

from typing import Any

from .errors import err_content_required, err_invalid_body, err_messages_required
from .models import ChatCompletionRequest


def validate_chat_payload(payload: Any) -> ChatCompletionRequest:
    """Gate a raw request body before any model call is made.

    Only two things are checked: ``messages`` is a non-empty list and its last
    entry carries non-empty string content. Earlier messages and the optional
    fields are neither validated nor coerced.
    """
    if not isinstance(payload, dict):
        raise err_invalid_body()
    messages = payload.get("messages")
    if not isinstance(messages, list) or not messages:
        raise err_messages_required()
    last = messages[-1]
    if not isinstance(last, dict):
        raise err_content_required()
    content = last.get("content")
    if not isinstance(content, str) or not content:
        raise err_content_required()
    return ChatCompletionRequest(**payload)
