from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel


class ChatCompletionRequest(BaseModel):
    # Fields are passed through to the relay call exactly as the client sent
    # them; only ``messages`` and the last message's content are checked.
    messages: List[Any]
    model: Any = None  # accepted, overridden by configuration
    call: Any = None  # accepted, unused
    max_tokens: Any = None
    temperature: Any = None
    stream: Any = False

    class Config:
        extra = "ignore"
