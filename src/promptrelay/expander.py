from __future__ import annotations

import logging
from typing import Any, Dict, List

from .errors import ProviderError
from .prompts import (
    EXPANSION_MAX_TOKENS,
    EXPANSION_TEMPERATURE,
    render_expansion_prompt,
)
from .provider import ProviderClient

logger = logging.getLogger(__name__)


def build_expansion_payload(content: str, model: str) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": [{"role": "user", "content": render_expansion_prompt(content)}],
        "max_tokens": EXPANSION_MAX_TOKENS,
        "temperature": EXPANSION_TEMPERATURE,
        "stream": False,
    }


def extract_first_content(completion: Any) -> str:
    """Return ``choices[0].message.content`` or raise ProviderError."""
    try:
        content = completion["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ProviderError(
            "Malformed expansion response from provider", details=completion
        ) from exc
    if not isinstance(content, str):
        raise ProviderError(
            "Expansion response carried no text content", details=completion
        )
    return content


def rewrite_messages(messages: List[Any], expanded: str) -> List[Any]:
    """Return a new conversation whose last message content is ``expanded``.

    Earlier messages are carried over as-is; the last one is shallow-copied so
    its other keys are preserved and the caller's dict is left untouched.
    """
    return [*messages[:-1], {**messages[-1], "content": expanded}]


class PromptExpander:
    def __init__(self, client: ProviderClient, model: str):
        self.client = client
        self.model = model

    async def expand(self, content: str) -> str:
        payload = build_expansion_payload(content, self.model)
        completion = await self.client.create_completion(payload)
        expanded = extract_first_content(completion)
        logger.debug(
            "[expander] Expanded prompt %d -> %d chars", len(content), len(expanded)
        )
        return expanded
