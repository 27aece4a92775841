# proxy.py
import asyncio
import copy
import json
import logging
import time
from typing import Any, Awaitable, TypeVar

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse, Response

import auth
import router
import stream
import transform
from config import settings
from errors import ConfigurationError, Diagnostic, ProxyAuthError, UpstreamTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

PROVIDER = "GeminiPro"

# Adding this tool enables Google Search grounding for the conversation.
DEFAULT_TOOLS = [{"googleSearch": {}}]

_STRIP_RESPONSE_HEADERS = {"transfer-encoding", "content-encoding", "content-length", "connection"}


class CancelToken:
    """Deadline shared by every upstream await of one proxied request.

    Armed once at forward time; the send and each read of a streamed body
    must finish before it expires. Nothing is scheduled on the loop, so
    there is no timer left behind when the request ends early.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self._deadline = time.monotonic() + timeout

    def remaining(self) -> float:
        return max(0.0, self._deadline - time.monotonic())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

    async def guard(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.remaining())
        except asyncio.TimeoutError as exc:
            raise UpstreamTimeout(f"upstream did not finish within {self.timeout:g}s") from exc


def build_payload(raw: bytes) -> Any:
    """Parse the inbound body and enable the default tool if none is set.

    Returns None for an absent, non-JSON or scalar body; the request is
    then forwarded without one.
    """
    if not raw:
        return None
    try:
        body = json.loads(raw)
    except (ValueError, RecursionError):
        logger.warning("[request] body is not a valid JSON, ignoring it.")
        return None

    if isinstance(body, dict):
        if body.get("tools") is None:
            body["tools"] = copy.deepcopy(DEFAULT_TOOLS)
        return body
    if isinstance(body, list):
        return body
    return None


async def forward(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    api_key: str,
    payload: Any,
    token: CancelToken,
) -> httpx.Response:
    """Send the request upstream and return the still-open response."""
    headers = {
        "Content-Type": "application/json",
        "Cache-Control": "no-store",
        auth.GOOGLE_KEY_HEADER: api_key,
    }
    content = json.dumps(payload, ensure_ascii=False).encode("utf-8") if payload is not None else None

    upstream_req = client.build_request(
        method,
        url,
        headers=headers,
        content=content,
        timeout=token.timeout,
    )
    try:
        return await token.guard(
            client.send(upstream_req, stream=True, follow_redirects=False)
        )
    except httpx.TimeoutException as exc:
        raise UpstreamTimeout(f"upstream timed out: {exc}") from exc


async def _passthrough(upstream: httpx.Response, token: CancelToken) -> Response:
    body = await token.guard(upstream.aread())
    resp_headers = {
        k: v
        for k, v in upstream.headers.items()
        if k.lower() not in _STRIP_RESPONSE_HEADERS
    }
    return Response(content=body, status_code=upstream.status_code, headers=resp_headers)


async def _request(request: Request, client: httpx.AsyncClient, api_key: str) -> Response:
    url = router.upstream_url(str(request.url.path), request.query_params, settings)
    logger.info("[Fetch Url] %s", url)

    payload = build_payload(await request.body())
    token = CancelToken(settings.upstream_timeout)
    upstream: httpx.Response | None = await forward(
        client, request.method, url, api_key, payload, token
    )
    try:
        if upstream.status_code >= 500:
            logger.error(
                "Upstream error %s for %s %s", upstream.status_code, request.method, url
            )
        if upstream.is_redirect:
            return await _passthrough(upstream, token)

        content_type = upstream.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            # The streaming body now owns the upstream response.
            response, upstream = stream.streaming_response(upstream, token), None
            return response
        return await transform.single_shot_response(upstream, token)
    finally:
        if upstream is not None:
            await upstream.aclose()


async def dispatch(request: Request, client: httpx.AsyncClient) -> Response | Diagnostic:
    """Handle one proxied request.

    Failures before forwarding answer 401; failures during or after
    forwarding come back as a Diagnostic for ``render``.
    """
    logger.info("[Google Route] %s %s", request.method, request.url.path)

    if request.method == "OPTIONS":
        return JSONResponse({"body": "OK"}, status_code=200)

    try:
        auth.check_access(request.headers, PROVIDER)
        api_key = auth.resolve_api_key(request.headers, settings.google_api_key)
    except ProxyAuthError as exc:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    try:
        return await _request(request, client, api_key)
    except ConfigurationError:
        raise
    except Exception as exc:
        logger.exception("[Google] request failed")
        return Diagnostic.from_exception(exc)


def render(result: Response | Diagnostic) -> Response:
    if isinstance(result, Diagnostic):
        return JSONResponse(result.to_dict())
    return result
