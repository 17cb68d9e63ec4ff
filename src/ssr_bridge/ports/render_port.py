from __future__ import annotations

from typing import Any, Mapping, Protocol

from ..models import PagePayload, RenderResult


class RenderGateway(Protocol):
    async def render(self, page: PagePayload | Mapping[str, Any]) -> RenderResult:
        """
        Render a page to head fragments and body markup.

        Args:
            page: A PagePayload, or a serialized page mapping which is parsed
                  with PagePayload.from_mapping.

        Raises:
            SSRError: A typed failure; no fallback document is produced.
        """
        ...
