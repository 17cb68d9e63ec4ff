from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Mapping

from .errors import InvalidRenderOutputError, RenderThrewError, RenderTimedOutError
from .loader import RenderModuleHandle
from .log import log_json
from .models import PagePayload, RenderResult

__all__ = ["invoke_render", "normalize_render_output"]


def _invalid(page: PagePayload, reason: str, reference: str | None) -> InvalidRenderOutputError:
    return InvalidRenderOutputError(
        f"invalid render output: {reason}",
        url=page.url,
        component=page.component,
        reference=reference,
        detail=reason,
    )


def normalize_render_output(
    value: Any,
    *,
    page: PagePayload,
    reference: str | None = None,
) -> RenderResult:
    """Validate a render module's return value; never fills in missing fields."""
    if isinstance(value, RenderResult):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        raise _invalid(page, f"expected a mapping, got {type(value).__name__}", reference)

    if "head" not in value:
        raise _invalid(page, "missing 'head'", reference)
    head = value["head"]
    if isinstance(head, (str, bytes)) or not isinstance(head, (list, tuple)):
        raise _invalid(page, f"'head' must be a list of strings, got {type(head).__name__}", reference)
    for index, fragment in enumerate(head):
        if not isinstance(fragment, str):
            raise _invalid(page, f"'head[{index}]' must be a string, got {type(fragment).__name__}", reference)

    if "body" not in value:
        raise _invalid(page, "missing 'body'", reference)
    body = value["body"]
    if not isinstance(body, str):
        raise _invalid(page, f"'body' must be a string, got {type(body).__name__}", reference)

    extra_keys = sorted(str(key) for key in value if key not in ("head", "body"))
    if extra_keys:
        log_json(
            logging.DEBUG,
            "ssr.render.extra_keys_ignored",
            component=page.component,
            url=page.url,
            keys=extra_keys,
        )
    return RenderResult(head=tuple(head), body=body)


async def _call_render(handle: RenderModuleHandle, page: PagePayload) -> Any:
    page_data = page.to_dict()
    try:
        if inspect.iscoroutinefunction(handle.render):
            result = await handle.render(page_data)
        else:
            result = await asyncio.to_thread(handle.render, page_data)
            if inspect.isawaitable(result):
                result = await result
    except Exception as exc:
        raise RenderThrewError(
            f"render raised {type(exc).__name__}: {exc}",
            url=page.url,
            component=page.component,
            reference=handle.reference,
            detail=f"{type(exc).__name__}: {exc}",
        ) from exc
    return result


async def invoke_render(
    handle: RenderModuleHandle,
    page: PagePayload,
    *,
    timeout_s: float | None = None,
) -> RenderResult:
    """
    Call the handle's render entry point once and normalize its result.

    Args:
        handle: Loaded render module.
        page: Page payload; the render function receives a private copy.
        timeout_s: Optional wall clock limit for the call.

    Raises:
        RenderThrewError: The entry point raised or its awaitable failed.
        InvalidRenderOutputError: The result has the wrong shape.
        RenderTimedOutError: ``timeout_s`` elapsed first.
    """
    if timeout_s is None:
        raw = await _call_render(handle, page)
    else:
        try:
            raw = await asyncio.wait_for(_call_render(handle, page), timeout=timeout_s)
        except asyncio.TimeoutError as exc:
            raise RenderTimedOutError(
                f"render timed out after {timeout_s}s",
                url=page.url,
                component=page.component,
                reference=handle.reference,
            ) from exc
    return normalize_render_output(raw, page=page, reference=handle.reference)
