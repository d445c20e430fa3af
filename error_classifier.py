"""error_classifier.py

Turns raw page-fetch and model failures into a small closed set of kinds
with a message and a suggestion a user can act on.

Fetch kinds:  dns_error, connection_refused, timeout, ssl_error, blocked,
              not_found, http_error, unknown
Model kinds:  not_running, no_model, connection_refused, timeout,
              auth_failed, endpoint_not_found, rate_limited, server_error,
              unknown

Each table is checked top to bottom and the first match wins. Exceptions
are inspected through their whole cause chain (``__cause__`` and
``__context__``) because httpx and openai wrap the socket-level error.
"""
import asyncio
import errno
import logging
import socket
import ssl
from typing import Iterator, Optional
from urllib.parse import urlparse

import httpx

from alt_text_models import FetchErrorInfo, HttpStatusError, ModelErrorInfo

logger = logging.getLogger(__name__)
try:
    logger.addHandler(logging.NullHandler())
except Exception:
    pass

RAW_MESSAGE_LIMIT = 200

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

_DNS_MARKERS = (
    "enotfound",
    "eai_again",
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "temporary failure in name resolution",
    "name resolution",
)
_REFUSED_MARKERS = ("econnrefused", "connection refused", "connect call failed")
_TIMEOUT_MARKERS = ("etimedout", "timed out", "timeout")
_SSL_MARKERS = ("certificate", "ssl", "tls")
_RESET_MARKERS = ("econnreset", "connection reset", "connection aborted")
_NO_MODEL_MARKERS = ("no models loaded", "model not found", "model_not_found")


def _chain(error: BaseException) -> Iterator[BaseException]:
    seen = set()
    cur: Optional[BaseException] = error
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        yield cur
        cur = cur.__cause__ or cur.__context__


def _text(error: BaseException) -> str:
    parts = []
    for e in _chain(error):
        parts.append(type(e).__name__)
        parts.append(str(e))
        code = getattr(e, "code", None)
        if isinstance(code, str):
            parts.append(code)
    return " ".join(parts).lower()


def _has(error: BaseException, types) -> bool:
    return any(isinstance(e, types) for e in _chain(error))


def _has_errno(error: BaseException, *codes: int) -> bool:
    return any(getattr(e, "errno", None) in codes for e in _chain(error))


def _raw(error: BaseException) -> str:
    msg = str(error) or type(error).__name__
    return msg[:RAW_MESSAGE_LIMIT]


def _is_dns(error: BaseException, text: str) -> bool:
    return _has(error, socket.gaierror) or any(m in text for m in _DNS_MARKERS)


def _is_refused(error: BaseException, text: str) -> bool:
    return (
        _has(error, ConnectionRefusedError)
        or _has_errno(error, errno.ECONNREFUSED)
        or any(m in text for m in _REFUSED_MARKERS)
    )


def _is_timeout(error: BaseException, text: str) -> bool:
    return (
        _has(error, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException))
        or _has_errno(error, errno.ETIMEDOUT)
        or any(m in text for m in _TIMEOUT_MARKERS)
    )


def _is_ssl(error: BaseException, text: str) -> bool:
    return _has(error, ssl.SSLError) or any(m in text for m in _SSL_MARKERS)


def _is_reset(error: BaseException, text: str) -> bool:
    return (
        _has(error, ConnectionResetError)
        or _has_errno(error, errno.ECONNRESET)
        or any(m in text for m in _RESET_MARKERS)
    )


def classify_http_status(status: int, url: str) -> FetchErrorInfo:
    code = f"HTTP_{status}"
    if status in (404, 410):
        return FetchErrorInfo(
            kind="not_found",
            code=code,
            message=f"The page {url} does not exist (HTTP {status}).",
            suggestion="Check the URL for typos or try the site's home page.",
            target=url,
        )
    if status in (401, 403, 429, 451):
        return FetchErrorInfo(
            kind="blocked",
            code=code,
            message=f"The site refused to serve {url} (HTTP {status}).",
            suggestion="The site may block automated requests or require a login; try again later or use a public page.",
            target=url,
        )
    if status in (408, 504, 524):
        return FetchErrorInfo(
            kind="timeout",
            code=code,
            message=f"The site took too long to answer for {url} (HTTP {status}).",
            suggestion="The server is slow or overloaded; try again in a moment.",
            target=url,
        )
    if status >= 400:
        return FetchErrorInfo(
            kind="http_error",
            code=code,
            message=f"The site answered {url} with HTTP {status}.",
            suggestion="The server reported an error; try again later.",
            target=url,
        )
    return FetchErrorInfo(
        kind="unknown",
        code=code,
        message=f"Unexpected HTTP status {status} for {url}.",
        suggestion="Try again, or check the URL in a browser.",
        target=url,
    )


def classify_fetch(error: BaseException, url: str) -> FetchErrorInfo:
    """Classify a failure that happened while fetching the page itself."""
    if isinstance(error, HttpStatusError):
        return classify_http_status(error.status, url)
    host = urlparse(url).hostname or url
    text = _text(error)
    if _is_dns(error, text):
        return FetchErrorInfo(
            kind="dns_error",
            code="ENOTFOUND",
            message=f"The hostname {host} could not be resolved.",
            suggestion="Check the domain name for typos and that your network/DNS is working.",
            target=url,
        )
    if _is_refused(error, text):
        return FetchErrorInfo(
            kind="connection_refused",
            code="ECONNREFUSED",
            message=f"The server at {host} refused the connection.",
            suggestion="The site may be down or not listening on that port; check the URL and try again later.",
            target=url,
        )
    if _is_timeout(error, text):
        return FetchErrorInfo(
            kind="timeout",
            code="ETIMEDOUT",
            message=f"Fetching {url} timed out.",
            suggestion="The server is slow or unreachable; try again later.",
            target=url,
        )
    if _is_ssl(error, text):
        return FetchErrorInfo(
            kind="ssl_error",
            code="SSL",
            message=f"A secure connection to {host} could not be established.",
            suggestion="The site's certificate may be invalid or expired; try the http:// address or contact the site owner.",
            target=url,
        )
    if _is_reset(error, text):
        return FetchErrorInfo(
            kind="blocked",
            code="ECONNRESET",
            message=f"The connection to {host} was reset.",
            suggestion="The site may be blocking automated requests; try again later.",
            target=url,
        )
    return FetchErrorInfo(
        kind="unknown",
        message=_raw(error),
        suggestion="Check that the URL opens in a browser and try again.",
        target=url,
    )


def _status_of(error: Optional[BaseException], response) -> Optional[int]:
    for obj in (response, getattr(error, "response", None), error):
        if obj is None:
            continue
        status = getattr(obj, "status_code", None) or getattr(obj, "status", None)
        if isinstance(status, int):
            return status
    return None


def _body_of(error: Optional[BaseException], response, body_text: Optional[str]) -> str:
    if body_text:
        return body_text
    for obj in (response, getattr(error, "response", None)):
        if obj is None:
            continue
        text = getattr(obj, "text", None)
        if isinstance(text, str):
            return text
    body = getattr(error, "body", None)
    return str(body) if body else ""


def _is_loopback(target: Optional[str]) -> bool:
    if not target:
        return False
    host = urlparse(target).hostname or target
    return host in _LOOPBACK_HOSTS or host.startswith("127.")


def classify_model(
    error: Optional[BaseException],
    target: Optional[str],
    response=None,
    body_text: Optional[str] = None,
) -> ModelErrorInfo:
    """Classify a failure talking to the text or vision model server.

    `response` may be any object with ``status_code``/``text`` (an httpx or
    openai response); `body_text` is the raw error body if it was read.
    """
    server = target or "the model server"
    body = _body_of(error, response, body_text)
    text = (_text(error) if error is not None else "") + " " + body.lower()
    status = _status_of(error, response)

    if any(m in text for m in _NO_MODEL_MARKERS):
        return ModelErrorInfo(
            kind="no_model",
            code=str(status) if status else None,
            message=f"No model is loaded on {server}.",
            suggestion=(
                "Open LM Studio, load a model from the Chat tab, make sure the "
                "Local Server is started (View > Local Server) and try again."
            ),
            target=target,
        )
    if error is not None:
        if _is_refused(error, text):
            if _is_loopback(target):
                return ModelErrorInfo(
                    kind="not_running",
                    code="ECONNREFUSED",
                    message=f"Cannot connect to the model server at {server}; it does not appear to be running.",
                    suggestion=(
                        "Start LM Studio, load a model and click 'Start Server', "
                        "or point LLM_URL at a running OpenAI-compatible endpoint."
                    ),
                    target=target,
                )
            return ModelErrorInfo(
                kind="connection_refused",
                code="ECONNREFUSED",
                message=f"The model server at {server} refused the connection.",
                suggestion="Check that the server URL is correct, reachable from this machine and not blocked by a firewall.",
                target=target,
            )
        if _is_dns(error, text):
            return ModelErrorInfo(
                kind="connection_refused",
                code="ENOTFOUND",
                message=f"The model server hostname in {server} cannot be resolved.",
                suggestion="Check the server URL and your network connection.",
                target=target,
            )
        if _is_reset(error, text):
            return ModelErrorInfo(
                kind="connection_refused",
                code="ECONNRESET",
                message=f"The connection to {server} was reset by the server.",
                suggestion="The server may have crashed or restarted; check its status and try again.",
                target=target,
            )
        if _is_timeout(error, text):
            return ModelErrorInfo(
                kind="timeout",
                code="ETIMEDOUT",
                message=f"The model server at {server} did not respond in time.",
                suggestion="The server may be overloaded or the model too slow; try again or use a smaller model.",
                target=target,
            )
    if status in (401, 403):
        return ModelErrorInfo(
            kind="auth_failed",
            code=str(status),
            message=f"Authentication with {server} failed ({status}).",
            suggestion="Check LLM_API_KEY or the server's authentication settings.",
            target=target,
        )
    if status == 404:
        return ModelErrorInfo(
            kind="endpoint_not_found",
            code="404",
            message=f"{server} has no /chat/completions endpoint (404).",
            suggestion="Verify the server URL and that it speaks the OpenAI-compatible API (usually ending in /v1).",
            target=target,
        )
    if status == 429:
        return ModelErrorInfo(
            kind="rate_limited",
            code="429",
            message=f"{server} is rate limiting requests (429).",
            suggestion="Wait a moment and try again.",
            target=target,
        )
    if status is not None and status >= 500:
        return ModelErrorInfo(
            kind="server_error",
            code=str(status),
            message=f"The model server at {server} hit an internal error ({status}).",
            suggestion="Check that the server is running properly and try again later.",
            target=target,
        )
    raw = _raw(error) if error is not None else body[:RAW_MESSAGE_LIMIT]
    return ModelErrorInfo(
        kind="unknown",
        code=str(status) if status else None,
        message=raw or "Unknown model error",
        suggestion="Check the model server logs and try again.",
        target=target,
    )


__all__ = ["classify_fetch", "classify_http_status", "classify_model"]
