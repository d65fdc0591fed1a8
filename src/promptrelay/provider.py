from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .config import ProxyConfig
from .errors import ProviderError

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "chat/completions"


def _error_from_body(status: int | None, body: Any) -> ProviderError:
    """Build a ProviderError from an OpenAI-style error body.

    Gemini's compatibility layer sometimes wraps the error object in a
    one-element list, so both shapes are accepted.
    """
    message = f"Provider returned HTTP {status}" if status else "Provider error"
    code: Optional[str] = None
    details: Any = body
    data = body
    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, dict):
        err = data.get("error", data)
        if isinstance(err, dict):
            message = err.get("message") or message
            raw_code = err.get("code")
            if not isinstance(raw_code, str):
                raw_code = err.get("status") or err.get("type") or raw_code
            code = str(raw_code) if raw_code is not None else None
        elif isinstance(err, str):
            message = err
    return ProviderError(message, status_code=status, code=code, details=details)


def _error_from_response_text(status: int, text: str) -> ProviderError:
    try:
        body: Any = json.loads(text)
    except ValueError:
        body = text[:500] if text else None
    return _error_from_body(status, body)


class ProviderClient:
    """Thin async client for an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        cfg: ProxyConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cfg = cfg
        headers = {}
        if cfg.provider_api_key:
            headers["Authorization"] = f"Bearer {cfg.provider_api_key}"
        self.client = httpx.AsyncClient(
            base_url=cfg.provider_base_url,
            headers=headers,
            timeout=cfg.backend_timeout_ms / 1000,
            transport=transport,
        )

    async def __aenter__(self) -> "ProviderClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def create_completion(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = await self.client.post(CHAT_COMPLETIONS_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Provider request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise _error_from_response_text(resp.status_code, resp.text)
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(
                "Provider returned a non-JSON response", details=resp.text[:200]
            ) from exc

    async def open_stream(self, payload: Dict[str, Any]) -> httpx.Response:
        """Send a streaming request and return the response once headers arrive.

        The caller owns the returned response and must close it.
        """
        request = self.client.build_request(
            "POST", CHAT_COMPLETIONS_PATH, json=payload
        )
        try:
            resp = await self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise ProviderError(f"Provider request failed: {exc}") from exc
        if resp.status_code >= 400:
            try:
                body = await resp.aread()
            finally:
                await resp.aclose()
            raise _error_from_response_text(
                resp.status_code, body.decode(errors="ignore")
            )
        return resp

    @staticmethod
    async def iter_chunks(resp: httpx.Response) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded JSON chunks from the provider's SSE body until [DONE]."""
        try:
            async for line in resp.aiter_lines():
                if not line or line.startswith(":"):
                    continue
                if not line.startswith("data:"):
                    continue
                raw = line[5:].strip()
                if raw == "[DONE]":
                    return
                try:
                    obj = json.loads(raw)
                except ValueError as exc:
                    raise ProviderError(
                        "Malformed stream frame from provider", details=raw[:200]
                    ) from exc
                if isinstance(obj, dict) and obj.get("error"):
                    raise _error_from_body(None, obj)
                yield obj
        except httpx.HTTPError as exc:
            logger.warning("[provider] Stream read failed: %s", exc)
            raise ProviderError(f"Provider stream failed: {exc}") from exc
