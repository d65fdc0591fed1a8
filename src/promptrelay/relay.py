from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, AsyncGenerator, Awaitable, Callable, Dict, List, Optional

import anyio
import httpx

from .models import ChatCompletionRequest
from .provider import ProviderClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 150
DEFAULT_TEMPERATURE = 0.7

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
DONE_FRAME = b"data: [DONE]\n\n"


class RelayState(str, Enum):
    STREAMING = "streaming"
    DONE = "done"
    ABORTED = "aborted"


def encode_event(chunk: Any) -> bytes:
    data = json.dumps(chunk, ensure_ascii=False, separators=(",", ":"))
    return f"data: {data}\n\n".encode()


def build_relay_payload(
    messages: List[Dict[str, Any]],
    request: ChatCompletionRequest,
    model: str,
    stream: bool,
) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": messages,
        "max_tokens": (
            request.max_tokens if request.max_tokens is not None else DEFAULT_MAX_TOKENS
        ),
        "temperature": (
            request.temperature
            if request.temperature is not None
            else DEFAULT_TEMPERATURE
        ),
        "stream": stream,
    }


class SseRelay:
    """Relay provider chunks to the client as server-sent events.

    One chunk is read, framed and handed to the sink before the next one is
    pulled. The relay ends in ``DONE`` (upstream finished, sentinel written)
    or ``ABORTED`` (upstream error or client gone, no sentinel).
    """

    def __init__(
        self,
        client: ProviderClient,
        response: httpx.Response,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        on_finish: Optional[Callable[["SseRelay"], None]] = None,
    ):
        self.client = client
        self.response = response
        self.is_disconnected = is_disconnected
        self.on_finish = on_finish
        self.state = RelayState.STREAMING
        self.chunks_sent = 0
        self.error: BaseException | None = None
        self._closed = False

    async def events(self) -> AsyncGenerator[bytes, None]:
        try:
            async for chunk in self.client.iter_chunks(self.response):
                yield encode_event(chunk)
                self.chunks_sent += 1
                if self.is_disconnected is not None and await self.is_disconnected():
                    logger.info(
                        "[relay] Client disconnected after %d chunk(s)",
                        self.chunks_sent,
                    )
                    self.state = RelayState.ABORTED
                    return
            yield DONE_FRAME
            self.state = RelayState.DONE
        except (asyncio.CancelledError, GeneratorExit):
            self.state = RelayState.ABORTED
            raise
        except Exception as exc:
            self.state = RelayState.ABORTED
            self.error = exc
            logger.error(
                "[relay] Upstream stream failed after %d chunk(s): %s",
                self.chunks_sent,
                exc,
            )
            raise
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Release the upstream response and client; safe to call repeatedly.

        Also covers a response that ends before ``events()`` is ever iterated,
        in which case the relay is marked ``ABORTED``.
        """
        if self._closed:
            return
        self._closed = True
        if self.state is RelayState.STREAMING:
            self.state = RelayState.ABORTED
        # The task may already be cancelled; closing must still reach the socket.
        with anyio.CancelScope(shield=True):
            await self.response.aclose()
            await self.client.aclose()
        if self.on_finish is not None:
            self.on_finish(self)


class CompletionRelay:
    def __init__(self, client: ProviderClient, model: str):
        self.client = client
        self.model = model

    async def complete(
        self, messages: List[Dict[str, Any]], request: ChatCompletionRequest
    ) -> Dict[str, Any]:
        payload = build_relay_payload(messages, request, self.model, stream=False)
        return await self.client.create_completion(payload)

    async def open_stream(
        self,
        messages: List[Dict[str, Any]],
        request: ChatCompletionRequest,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        on_finish: Optional[Callable[[SseRelay], None]] = None,
    ) -> SseRelay:
        payload = build_relay_payload(messages, request, self.model, stream=True)
        response = await self.client.open_stream(payload)
        return SseRelay(self.client, response, is_disconnected, on_finish)
