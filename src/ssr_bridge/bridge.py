from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping

from .config import SSRConfig
from .errors import SSRError
from .invoker import invoke_render
from .loader import ModuleCache, RenderModuleHandle, default_cache
from .log import log_json
from .models import PagePayload, RenderResult

__all__ = ["SSRBridge", "coerce_page"]


def coerce_page(page: PagePayload | Mapping[str, Any]) -> PagePayload:
    if isinstance(page, PagePayload):
        return page
    return PagePayload.from_mapping(page)


class SSRBridge:
    """In-process render gateway backed by a configured render module."""

    def __init__(self, config: SSRConfig, *, cache: ModuleCache | None = None) -> None:
        self._config = config
        self._cache = cache or default_cache

    @property
    def config(self) -> SSRConfig:
        return self._config

    @property
    def module_loaded(self) -> bool:
        return self._cache.is_loaded(self._config.module_path)

    def handle(self) -> RenderModuleHandle:
        return self._cache.get_handle(
            self._config.module_path,
            module_kind=self._config.module_kind,
        )

    async def render(self, page: PagePayload | Mapping[str, Any]) -> RenderResult:
        payload = coerce_page(page)
        start = time.monotonic()
        try:
            handle = self._cache.peek(self._config.module_path, module_kind=self._config.module_kind)
            if handle is None:
                # First load runs module top-level code; keep it off the event loop.
                handle = await asyncio.to_thread(self.handle)
            result = await invoke_render(
                handle,
                payload,
                timeout_s=self._config.render_timeout_s,
            )
        except SSRError as exc:
            # Loader failures know the module, not the page being rendered.
            if exc.url is None:
                exc.url = payload.url
            if exc.component is None:
                exc.component = payload.component
            log_json(
                logging.ERROR,
                "ssr.render.failed",
                error=exc.code,
                component=payload.component,
                url=payload.url,
                reference=self._config.module_path,
                detail=exc.detail,
                latency_ms=int((time.monotonic() - start) * 1000),
            )
            raise
        log_json(
            logging.INFO,
            "ssr.render.completed",
            component=payload.component,
            url=payload.url,
            head_count=len(result.head),
            latency_ms=int((time.monotonic() - start) * 1000),
        )
        return result
