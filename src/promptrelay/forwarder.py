from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .config import ProxyConfig
from .expander import PromptExpander, rewrite_messages
from .logging_utils import JsonlLogger
from .provider import ProviderClient
from .relay import CompletionRelay, SseRelay
from .validation import validate_chat_payload

logger = logging.getLogger(__name__)

ClientFactory = Callable[[ProxyConfig], ProviderClient]


class ChatForwarder:
    """Run validate -> expand -> rewrite -> relay for one chat request."""

    def __init__(
        self,
        cfg: ProxyConfig,
        request_log: JsonlLogger,
        client_factory: ClientFactory = ProviderClient,
    ):
        self.cfg = cfg
        self.request_log = request_log
        self.client_factory = client_factory

    async def handle_chat(
        self,
        payload: Any,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> Union[Dict[str, Any], SseRelay]:
        request = validate_chat_payload(payload)
        started_at = time.time()
        record: Dict[str, Any] = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(started_at)),
            "expansion_model": self.cfg.expansion_model,
            "relay_model": self.cfg.relay_model,
            "stream": bool(request.stream),
            "messages": len(request.messages),
        }
        original = request.messages[-1]["content"]
        if self.cfg.log_prompts:
            record["prompt"] = original

        # Each request owns its client; a stream takes ownership on hand-off.
        client = self.client_factory(self.cfg)
        handed_off = False
        try:
            expanded = await PromptExpander(client, self.cfg.expansion_model).expand(
                original
            )
            if self.cfg.log_prompts:
                record["expanded_prompt"] = expanded
            rewritten = rewrite_messages(request.messages, expanded)
            relay = CompletionRelay(client, self.cfg.relay_model)
            logger.debug(
                "[forwarder] Relaying %d message(s) to '%s' (stream=%s)",
                len(rewritten),
                self.cfg.relay_model,
                bool(request.stream),
            )

            if request.stream:

                def finish(sse: SseRelay) -> None:
                    record["outcome"] = sse.state.value
                    record["chunks"] = sse.chunks_sent
                    if sse.error is not None:
                        record["error"] = str(sse.error)
                    self._log(record, started_at)

                sse = await relay.open_stream(
                    rewritten, request, is_disconnected, on_finish=finish
                )
                handed_off = True
                return sse

            completion = await relay.complete(rewritten, request)
            record["outcome"] = "ok"
            self._log(record, started_at)
            return completion
        except Exception as exc:
            record["outcome"] = "error"
            record["status"] = getattr(exc, "status_code", None)
            record["error"] = str(exc)
            self._log(record, started_at)
            raise
        finally:
            if not handed_off:
                await client.aclose()

    def _log(self, record: Dict[str, Any], started_at: float) -> None:
        record["duration_ms"] = round((time.time() - started_at) * 1000, 1)
        self.request_log.log(record)
