import asyncio

import httpx
import pytest

from promptrelay.config import ProxyConfig
from promptrelay.errors import ProviderError, err_from_provider
from promptrelay.provider import ProviderClient

from fakes import CHUNKS, sse_body

CFG = ProxyConfig(
    provider_base_url="https://llm.test/v1beta/openai/", provider_api_key="sk-test"
)


def _client(handler) -> ProviderClient:
    return ProviderClient(CFG, transport=httpx.MockTransport(handler))


def _create(handler, payload=None):
    async def run():
        async with _client(handler) as client:
            return await client.create_completion(payload or {"model": "m"})

    return asyncio.run(run())


def _stream(handler):
    async def run():
        async with _client(handler) as client:
            resp = await client.open_stream({"model": "m", "stream": True})
            try:
                return [chunk async for chunk in client.iter_chunks(resp)]
            finally:
                await resp.aclose()

    return asyncio.run(run())


def test_create_completion_posts_to_base_url_with_bearer_key():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json={"id": "x", "choices": []})

    result = _create(handler)

    assert result == {"id": "x", "choices": []}
    assert seen["url"] == "https://llm.test/v1beta/openai/chat/completions"
    assert seen["auth"] == "Bearer sk-test"


def test_openai_style_error_body_is_parsed():
    def handler(request):
        return httpx.Response(
            429,
            json={
                "error": {
                    "message": "Rate limit hit",
                    "type": "requests",
                    "code": "rate_limited",
                }
            },
        )

    with pytest.raises(ProviderError) as exc_info:
        _create(handler)

    err = exc_info.value
    assert err.status_code == 429
    assert err.code == "rate_limited"
    assert err.message == "Rate limit hit"

    mapped = err_from_provider(err)
    assert mapped.status_code == 429
    assert mapped.detail["code"] == "rate_limited"
    assert mapped.detail["error"] == "Rate limit hit"


def test_gemini_list_wrapped_error_uses_status_as_code():
    def handler(request):
        return httpx.Response(
            400,
            json=[
                {
                    "error": {
                        "code": 400,
                        "message": "API key not valid",
                        "status": "INVALID_ARGUMENT",
                    }
                }
            ],
        )

    with pytest.raises(ProviderError) as exc_info:
        _create(handler)

    assert exc_info.value.status_code == 400
    assert exc_info.value.code == "INVALID_ARGUMENT"
    assert exc_info.value.message == "API key not valid"


def test_plain_text_error_keeps_status():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ProviderError) as exc_info:
        _create(handler)

    assert exc_info.value.status_code == 502
    assert exc_info.value.details == "bad gateway"


def test_transport_failure_has_no_status_and_maps_to_500():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderError) as exc_info:
        _create(handler)

    assert exc_info.value.status_code is None
    assert err_from_provider(exc_info.value).status_code == 500


def test_non_json_success_body_is_malformed():
    def handler(request):
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(ProviderError, match="non-JSON"):
        _create(handler)


def test_iter_chunks_decodes_frames_until_done():
    body = (
        b": keep-alive comment\n\n"
        + sse_body(CHUNKS[:2])
        + b'data: {"never": "read"}\n\n'
    )

    def handler(request):
        return httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=body
        )

    assert _stream(handler) == CHUNKS[:2]


def test_iter_chunks_stops_at_end_of_body_without_done():
    def handler(request):
        return httpx.Response(200, content=sse_body(CHUNKS, done=False))

    assert _stream(handler) == CHUNKS


def test_iter_chunks_raises_on_embedded_error():
    body = sse_body(CHUNKS[:1], done=False) + (
        b'data: {"error": {"message": "quota exceeded", "code": "quota"}}\n\n'
    )

    def handler(request):
        return httpx.Response(200, content=body)

    with pytest.raises(ProviderError) as exc_info:
        _stream(handler)
    assert exc_info.value.code == "quota"


def test_iter_chunks_raises_on_undecodable_frame():
    def handler(request):
        return httpx.Response(200, content=b"data: {truncated\n\n")

    with pytest.raises(ProviderError, match="Malformed"):
        _stream(handler)


def test_open_stream_raises_before_any_chunk_on_http_error():
    def handler(request):
        return httpx.Response(
            429, json={"error": {"message": "slow", "code": "rate_limited"}}
        )

    with pytest.raises(ProviderError) as exc_info:
        _stream(handler)
    assert exc_info.value.status_code == 429
