"""
Render module resolver/loader.

Turns a module reference (a ``.py`` path or a dotted module name) into a
RenderModuleHandle exposing the module's single ``render`` entry point.

Two module conventions are supported:

- ``exports``: the module defines an ``exports`` mapping with a ``render`` key.
- ``declarative``: the module defines a top-level ``render`` callable.

The convention comes from explicit configuration, then from an ``ssr.json``
manifest next to the module file, and defaults to ``exports``. Source text is
never inspected.
"""
from __future__ import annotations

import hashlib
import importlib
import importlib.util
import inspect
import json
import logging
import os
import sys
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Mapping

from .config import ModuleKind, parse_module_kind
from .errors import InvalidModuleShapeError, RenderModuleLoadError, RenderModuleNotFoundError
from .log import log_json


__all__ = [
    "MANIFEST_NAME",
    "RenderFn",
    "RenderModuleHandle",
    "ModuleCache",
    "default_cache",
    "load_render_module",
    "resolve_reference",
]

MANIFEST_NAME = "ssr.json"
DEFAULT_MODULE_KIND: ModuleKind = "exports"

RenderFn = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class RenderModuleHandle:
    """Loaded render entry point, independent of the module's convention."""

    reference: str
    convention: ModuleKind
    render: RenderFn
    module: ModuleType = field(repr=False, compare=False)


@dataclass(frozen=True)
class ResolvedReference:
    # Absolute file path for path references, the dotted name otherwise
    key: str
    origin: Path | None
    is_path: bool


def _is_path_reference(reference: str) -> bool:
    if reference.endswith(".py"):
        return True
    separators = {"/", os.sep}
    if os.altsep:
        separators.add(os.altsep)
    return any(sep in reference for sep in separators)


def resolve_reference(reference: str) -> ResolvedReference:
    """Resolve a reference without executing the module itself."""
    if not isinstance(reference, str) or not reference.strip():
        raise RenderModuleNotFoundError(str(reference), detail="empty module reference")
    reference = reference.strip()

    if _is_path_reference(reference):
        path = Path(reference).expanduser()
        if not path.is_absolute():
            path = Path.cwd() / path
        path = path.resolve()
        if path.is_dir():
            path = path / "__init__.py"
        if not path.is_file():
            raise RenderModuleNotFoundError(reference, detail=f"no such file: {path}")
        return ResolvedReference(key=str(path), origin=path, is_path=True)

    try:
        spec = importlib.util.find_spec(reference)
    except ModuleNotFoundError as exc:
        raise RenderModuleNotFoundError(reference, detail=str(exc)) from exc
    except Exception as exc:
        # A parent package failed to initialize.
        raise RenderModuleLoadError(reference, detail=f"{type(exc).__name__}: {exc}") from exc
    if spec is None:
        raise RenderModuleNotFoundError(reference)
    origin = Path(spec.origin) if spec.origin and spec.has_location else None
    return ResolvedReference(key=reference, origin=origin, is_path=False)


def _manifest_kind(resolved: ResolvedReference, reference: str) -> ModuleKind | None:
    if resolved.origin is None:
        return None
    manifest = resolved.origin.parent / MANIFEST_NAME
    if not manifest.is_file():
        return None
    try:
        with open(manifest, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        raise RenderModuleLoadError(reference, detail=f"unreadable {MANIFEST_NAME}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise RenderModuleLoadError(reference, detail=f"{MANIFEST_NAME} must be an object")
    try:
        return parse_module_kind(raw.get("module_kind"), f"{MANIFEST_NAME}.module_kind")
    except ValueError as exc:
        raise RenderModuleLoadError(reference, detail=str(exc)) from exc


def select_convention(
    resolved: ResolvedReference,
    reference: str,
    module_kind: str | None = None,
) -> ModuleKind:
    try:
        explicit = parse_module_kind(module_kind)
    except ValueError as exc:
        raise RenderModuleLoadError(reference, detail=str(exc)) from exc
    if explicit is not None:
        return explicit
    return _manifest_kind(resolved, reference) or DEFAULT_MODULE_KIND


def _private_module_name(path: Path) -> str:
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:16]
    return f"_ssr_render_{digest}"


def _names_reference(missing: str, reference: str) -> bool:
    return reference == missing or reference.startswith(missing + ".")


def _execute_module(resolved: ResolvedReference, reference: str) -> ModuleType:
    if not resolved.is_path:
        try:
            return importlib.import_module(resolved.key)
        except ModuleNotFoundError as exc:
            if exc.name and _names_reference(exc.name, resolved.key):
                raise RenderModuleNotFoundError(reference, detail=str(exc)) from exc
            raise RenderModuleLoadError(reference, detail=f"{type(exc).__name__}: {exc}") from exc
        except Exception as exc:
            raise RenderModuleLoadError(reference, detail=f"{type(exc).__name__}: {exc}") from exc

    path = resolved.origin
    assert path is not None
    name = _private_module_name(path)
    search = [str(path.parent)] if path.name == "__init__.py" else None
    spec = importlib.util.spec_from_file_location(name, path, submodule_search_locations=search)
    if spec is None or spec.loader is None:
        raise RenderModuleLoadError(reference, detail=f"no loader for {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:
        sys.modules.pop(name, None)
        raise RenderModuleLoadError(reference, detail=f"{type(exc).__name__}: {exc}") from exc
    return module


def _accepts_one_argument(fn: Callable[..., Any]) -> bool:
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # Builtins and some C callables expose no signature.
        return True
    try:
        signature.bind(None)
    except TypeError:
        return False
    return True


def _extract_render(module: ModuleType, convention: ModuleKind, reference: str) -> RenderFn:
    if convention == "exports":
        exports = getattr(module, "exports", None)
        if not isinstance(exports, Mapping):
            raise InvalidModuleShapeError(reference, "expected a module-level 'exports' mapping")
        render = exports.get("render")
        where = "exports['render']"
    else:
        render = getattr(module, "render", None)
        where = "render"
    if render is None:
        raise InvalidModuleShapeError(reference, f"{where} is not defined")
    if not callable(render):
        raise InvalidModuleShapeError(reference, f"{where} is not callable")
    if not _accepts_one_argument(render):
        raise InvalidModuleShapeError(reference, f"{where} must accept exactly one argument")
    return render


class ModuleCache:
    """
    Process-wide cache of loaded render modules and their handles.

    Modules are keyed by resolved reference and initialized at most once,
    including under concurrent first loads from several threads. Failed loads
    are not cached.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self._modules: dict[str, ModuleType] = {}
        self._handles: dict[tuple[str, ModuleKind], RenderModuleHandle] = {}
        self._requests: dict[tuple[str, str | None], RenderModuleHandle] = {}

    def get_handle(self, reference: str, *, module_kind: str | None = None) -> RenderModuleHandle:
        request_key = (reference, module_kind)
        handle = self._requests.get(request_key)
        if handle is not None:
            return handle

        resolved = resolve_reference(reference)
        convention = select_convention(resolved, reference, module_kind)
        handle_key = (resolved.key, convention)
        handle = self._handles.get(handle_key)
        if handle is None:
            module = self._module_for(resolved, reference)
            render = _extract_render(module, convention, reference)
            handle = RenderModuleHandle(
                reference=reference,
                convention=convention,
                render=render,
                module=module,
            )
        with self._lock:
            handle = self._handles.setdefault(handle_key, handle)
            self._requests[request_key] = handle
        return handle

    def peek(self, reference: str, *, module_kind: str | None = None) -> RenderModuleHandle | None:
        """Return an already-built handle without resolving or loading anything."""
        return self._requests.get((reference, module_kind))

    def is_loaded(self, reference: str) -> bool:
        if any(key[0] == reference for key in list(self._requests)):
            return True
        try:
            resolved = resolve_reference(reference)
        except (RenderModuleNotFoundError, RenderModuleLoadError):
            return False
        return resolved.key in self._modules

    def clear(self) -> None:
        with self._lock:
            self._modules.clear()
            self._handles.clear()
            self._requests.clear()
            self._key_locks.clear()

    def _module_for(self, resolved: ResolvedReference, reference: str) -> ModuleType:
        module = self._modules.get(resolved.key)
        if module is not None:
            return module
        with self._lock:
            key_lock = self._key_locks.setdefault(resolved.key, threading.Lock())
        with key_lock:
            module = self._modules.get(resolved.key)
            if module is not None:
                return module
            start = time.monotonic()
            try:
                module = _execute_module(resolved, reference)
            except (RenderModuleNotFoundError, RenderModuleLoadError) as exc:
                log_json(
                    logging.ERROR,
                    "ssr.module.load_failed",
                    reference=reference,
                    error=exc.code,
                    detail=exc.detail,
                )
                raise
            with self._lock:
                self._modules[resolved.key] = module
            log_json(
                logging.INFO,
                "ssr.module.loaded",
                reference=reference,
                resolved=resolved.key,
                latency_ms=int((time.monotonic() - start) * 1000),
            )
            return module


default_cache = ModuleCache()


def load_render_module(
    reference: str,
    *,
    module_kind: str | None = None,
    cache: ModuleCache | None = None,
) -> RenderModuleHandle:
    """Load (or fetch from the cache) the handle for ``reference``."""
    return (cache or default_cache).get_handle(reference, module_kind=module_kind)
