from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .config import ProxyConfig
from .errors import ProviderError, ProxyError, err_from_provider, err_unexpected
from .forwarder import ChatForwarder
from .logging_utils import JsonlLogger, configure_logging
from .relay import SSE_HEADERS, SseRelay

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"

_cfg = ProxyConfig.load()
configure_logging(_cfg)
_logger = JsonlLogger(_cfg.log_path, _cfg.max_log_bytes)
_forwarder = ChatForwarder(_cfg, _logger)

if not _cfg.provider_api_key:
    logger.warning(
        "[app] No provider API key configured; set GEMINI_API_KEY or "
        "PROMPT_RELAY_PROVIDER_API_KEY."
    )

app = FastAPI(title="Prompt Relay", version="0.1")


def _error_response(exc: ProxyError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.detail)


class RelayResponse(StreamingResponse):
    """SSE response that always releases its relay, even if never iterated."""

    def __init__(self, relay: SseRelay):
        super().__init__(
            relay.events(), media_type="text/event-stream", headers=SSE_HEADERS
        )
        self.relay = relay

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.relay.aclose()


@app.post(CHAT_COMPLETIONS_PATH)
async def chat_completions(req: Request):
    try:
        payload = await req.json()
    except ValueError:
        payload = None
    try:
        result = await _forwarder.handle_chat(
            payload, is_disconnected=req.is_disconnected
        )
    except ProxyError as exc:  # structured
        return _error_response(exc)
    except ProviderError as exc:
        logger.error("[chat_completions] Provider call failed: %s", exc)
        return _error_response(err_from_provider(exc))
    except Exception as exc:  # noqa: BLE001
        logger.exception("[chat_completions] Unexpected error")
        return _error_response(err_unexpected(exc))

    if isinstance(result, SseRelay):
        return RelayResponse(result)
    return JSONResponse(content=result)


@app.api_route(
    CHAT_COMPLETIONS_PATH,
    methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "OPTIONS"],
    include_in_schema=False,
)
async def chat_completions_other_methods():
    return JSONResponse(status_code=404, content={"message": "Not Found"})


@app.get("/v1/health")
async def health():
    return {
        "status": "ok",
        "expansion_model": _cfg.expansion_model,
        "relay_model": _cfg.relay_model,
    }


def main():  # pragma: no cover
    import uvicorn

    uvicorn.run(app, host=_cfg.host, port=_cfg.port)


if __name__ == "__main__":  # pragma: no cover
    main()
