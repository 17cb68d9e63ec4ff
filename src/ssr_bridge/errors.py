from __future__ import annotations

from typing import Any, Mapping

__all__ = [
    "SSRError",
    "RenderModuleNotFoundError",
    "InvalidModuleShapeError",
    "RenderModuleLoadError",
    "RenderThrewError",
    "InvalidRenderOutputError",
    "RenderTimedOutError",
    "error_from_dict",
]


class SSRError(Exception):
    """Base error for every failure the bridge reports to its host."""

    code = "SSR_ERROR"

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        component: str | None = None,
        reference: str | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.url = url
        self.component = component
        self.reference = reference
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"error": self.code, "message": self.message}
        for key in ("url", "component", "reference", "detail"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data


class RenderModuleNotFoundError(SSRError):
    """Module reference cannot be resolved."""

    code = "MODULE_NOT_FOUND"

    def __init__(self, reference: str, *, detail: str | None = None) -> None:
        super().__init__(
            f"render module not found: {reference}",
            reference=reference,
            detail=detail,
        )


class InvalidModuleShapeError(SSRError):
    """Module resolved but exposes no usable render entry point."""

    code = "INVALID_MODULE_SHAPE"

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"invalid render module {reference}: {reason}", reference=reference)
        self.reason = reason


class RenderModuleLoadError(SSRError):
    """Module top-level code raised, or its declared kind is unusable."""

    code = "MODULE_LOAD_FAILED"

    def __init__(self, reference: str, *, detail: str | None = None) -> None:
        super().__init__(
            f"render module failed to load: {reference}",
            reference=reference,
            detail=detail,
        )


class RenderThrewError(SSRError):
    code = "RENDER_THREW"


class InvalidRenderOutputError(SSRError):
    code = "INVALID_RENDER_OUTPUT"


class RenderTimedOutError(SSRError):
    code = "RENDER_TIMED_OUT"


_BY_CODE: dict[str, type[SSRError]] = {
    cls.code: cls
    for cls in (
        RenderModuleNotFoundError,
        InvalidModuleShapeError,
        RenderModuleLoadError,
        RenderThrewError,
        InvalidRenderOutputError,
        RenderTimedOutError,
    )
}


def error_from_dict(data: Mapping[str, Any]) -> SSRError | None:
    """Rebuild a typed error from its ``to_dict`` form; None for unknown codes."""
    cls = _BY_CODE.get(str(data.get("error")))
    if cls is None:
        return None
    message = data.get("message")
    # Bypass the subclass constructors; their messages are already rendered.
    err = cls.__new__(cls)
    SSRError.__init__(
        err,
        str(message) if message is not None else cls.code,
        url=_opt_str(data.get("url")),
        component=_opt_str(data.get("component")),
        reference=_opt_str(data.get("reference")),
        detail=_opt_str(data.get("detail")),
    )
    if cls is InvalidModuleShapeError:
        err.reason = err.detail or err.message
    return err


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None
