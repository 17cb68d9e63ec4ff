from __future__ import annotations

import logging
import time
from typing import Any, Mapping

import httpx

from .bridge import coerce_page
from .errors import RenderThrewError, RenderTimedOutError, SSRError, error_from_dict
from .invoker import normalize_render_output
from .log import log_json
from .models import PagePayload, RenderResult

__all__ = ["HttpRenderGateway"]


class HttpRenderGateway:
    """Render gateway that delegates to a remote SSR server's /render endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url.strip():
            raise ValueError("base_url required")
        self._render_url = f"{base_url.strip().rstrip('/')}/render"
        self._timeout_s = timeout_s
        self._transport = transport

    async def render(self, page: PagePayload | Mapping[str, Any]) -> RenderResult:
        payload = coerce_page(page)
        start = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s, transport=self._transport) as client:
                resp = await client.post(self._render_url, json=payload.to_dict())
        except httpx.TimeoutException as exc:
            raise RenderTimedOutError(
                f"ssr server timed out after {self._timeout_s}s",
                url=payload.url,
                component=payload.component,
            ) from exc
        except httpx.HTTPError as exc:
            raise RenderThrewError(
                f"ssr server http error: {exc}",
                url=payload.url,
                component=payload.component,
                detail=f"{type(exc).__name__}: {exc}",
            ) from exc

        if resp.status_code >= 400:
            _raise_remote(resp, payload)
        try:
            data = resp.json()
        except ValueError as exc:
            raise RenderThrewError(
                "ssr server returned non-JSON response",
                url=payload.url,
                component=payload.component,
                detail=resp.text[:500],
            ) from exc
        result = normalize_render_output(data, page=payload, reference=self._render_url)
        log_json(
            logging.INFO,
            "ssr.render.completed",
            component=payload.component,
            url=payload.url,
            remote=self._render_url,
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return result


def _raise_remote(resp: httpx.Response, page: PagePayload) -> None:
    err: SSRError | None = None
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = error_from_dict(body)
    if err is None:
        err = RenderThrewError(
            f"ssr server responded {resp.status_code}",
            url=page.url,
            component=page.component,
            detail=resp.text[:500],
        )
    if err.url is None:
        err.url = page.url
    if err.component is None:
        err.component = page.component
    log_json(
        logging.ERROR,
        "ssr.render.failed",
        error=err.code,
        component=page.component,
        url=page.url,
        status_code=resp.status_code,
    )
    raise err
