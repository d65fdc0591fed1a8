from __future__ import annotations

from typing import Any

from fastapi import HTTPException


class ProxyError(HTTPException):
    def __init__(
        self,
        status_code: int,
        message: str,
        code: str | None = None,
        details: Any = None,
    ):
        payload: dict[str, Any] = {"error": message}
        if code:
            payload["code"] = code
        if details is not None:
            payload["details"] = details
        super().__init__(status_code=status_code, detail=payload)


class ProviderError(Exception):
    """Failure reported by (or while talking to) the completion provider.

    ``status_code`` is only set when the provider answered with an HTTP error;
    transport failures and malformed responses leave it as ``None``.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


def err_invalid_body() -> ProxyError:
    return ProxyError(400, "Request body must be a JSON object")


def err_messages_required() -> ProxyError:
    return ProxyError(400, "messages must be a non-empty array")


def err_content_required() -> ProxyError:
    return ProxyError(400, "Last message must have non-empty content")


def err_from_provider(exc: ProviderError) -> ProxyError:
    status = exc.status_code if exc.status_code and exc.status_code >= 400 else 500
    return ProxyError(status, exc.message, code=exc.code, details=exc.details)


def err_unexpected(exc: BaseException) -> ProxyError:
    return ProxyError(500, str(exc) or "Unknown error", details=repr(exc))
