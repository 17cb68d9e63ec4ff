from __future__ import annotations

import json

import httpx
import pytest

from ssr_bridge.errors import (
    InvalidModuleShapeError,
    InvalidRenderOutputError,
    RenderThrewError,
    RenderTimedOutError,
)
from ssr_bridge.http_gateway import HttpRenderGateway
from ssr_bridge.models import PagePayload, RenderResult

pytestmark = pytest.mark.anyio

PAGE = PagePayload(component="X", props={"content": "Hello"}, url="/x", version="v1")


def _gateway(handler) -> HttpRenderGateway:
    return HttpRenderGateway("http://ssr.test/", timeout_s=1.0, transport=httpx.MockTransport(handler))


async def test_posts_page_and_normalizes_result() -> None:
    seen: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"head": ["<title>t</title>"], "body": '<div id="ssr">Hello</div>'})

    result = await _gateway(handler).render(PAGE)
    assert result == RenderResult(head=("<title>t</title>",), body='<div id="ssr">Hello</div>')
    assert seen["url"] == "http://ssr.test/render"
    assert seen["body"] == {"component": "X", "props": {"content": "Hello"}, "url": "/x", "version": "v1"}


async def test_malformed_remote_result_is_invalid_output() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"body": "<div></div>"})

    with pytest.raises(InvalidRenderOutputError, match="missing 'head'"):
        await _gateway(handler).render(PAGE)


async def test_remote_typed_error_is_reraised() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500,
            json={"error": "INVALID_MODULE_SHAPE", "message": "invalid render module", "reference": "ssr.py"},
        )

    with pytest.raises(InvalidModuleShapeError) as exc_info:
        await _gateway(handler).render(PAGE)
    assert exc_info.value.reference == "ssr.py"
    assert exc_info.value.url == "/x"


async def test_remote_untyped_error_is_render_threw() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    with pytest.raises(RenderThrewError, match="503"):
        await _gateway(handler).render(PAGE)


async def test_transport_timeout_is_render_timed_out() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(RenderTimedOutError):
        await _gateway(handler).render(PAGE)


async def test_connection_error_is_render_threw() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RenderThrewError, match="refused"):
        await _gateway(handler).render(PAGE)


def test_requires_base_url() -> None:
    with pytest.raises(ValueError):
        HttpRenderGateway(" ")
