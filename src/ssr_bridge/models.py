from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, TypedDict

__all__ = ["PagePayload", "RenderResult", "WireRenderResult"]

_PAGE_FIELDS = ("component", "props", "url", "version")


class WireRenderResult(TypedDict):
    head: list[str]
    body: str


@dataclass(frozen=True)
class PagePayload:
    """Serialized page handed to the render module."""

    component: str
    url: str
    props: Mapping[str, Any] = field(default_factory=dict)
    version: str | int | float | None = None
    # Remaining top-level page fields, passed through untouched.
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.component, str) or not self.component.strip():
            raise ValueError("component must be a non-empty string")
        if not isinstance(self.url, str):
            raise ValueError("url must be a string")
        props = self.props if self.props is not None else {}
        if not isinstance(props, Mapping):
            raise ValueError("props must be a mapping")
        if not all(isinstance(key, str) for key in props):
            raise ValueError("props keys must be strings")
        if isinstance(self.version, bool) or not isinstance(self.version, (str, int, float, type(None))):
            raise ValueError("version must be a string or number when provided")
        if not isinstance(self.extra, Mapping):
            raise ValueError("extra must be a mapping")
        # Deep copies: the caller's nested containers must not reach the payload.
        object.__setattr__(self, "props", MappingProxyType(copy.deepcopy(dict(props))))
        object.__setattr__(self, "extra", MappingProxyType(copy.deepcopy(dict(self.extra))))

    @classmethod
    def from_mapping(cls, raw: Any) -> "PagePayload":
        if not isinstance(raw, Mapping):
            raise ValueError("page must be an object")
        component = raw.get("component")
        if component is None:
            raise ValueError("page.component is required")
        url = raw.get("url")
        if url is None:
            raise ValueError("page.url is required")
        props = raw.get("props")
        extra = {key: value for key, value in raw.items() if key not in _PAGE_FIELDS}
        return cls(
            component=component,
            url=url,
            props={} if props is None else props,
            version=raw.get("version"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        """Fresh serialized page; mutations by the caller never reach this payload."""
        data: dict[str, Any] = copy.deepcopy(dict(self.extra))
        data["component"] = self.component
        data["props"] = copy.deepcopy(dict(self.props))
        data["url"] = self.url
        data["version"] = self.version
        return data


@dataclass(frozen=True)
class RenderResult:
    head: tuple[str, ...]
    body: str

    def to_dict(self) -> WireRenderResult:
        return {"head": list(self.head), "body": self.body}
