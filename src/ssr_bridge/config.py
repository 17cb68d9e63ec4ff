"""
Configuration loader for the SSR bridge.

Reads the render module reference and invocation options from a JSON file
and/or the environment. Config is loaded once and immutable afterwards.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping, cast


__all__ = [
    "ModuleKind",
    "MODULE_KINDS",
    "SSRConfig",
    "load_config",
    "config_from_env",
    "get_config",
    "reset_config_cache",
    "parse_module_kind",
]

ModuleKind = Literal["exports", "declarative"]

MODULE_KINDS: tuple[ModuleKind, ...] = ("exports", "declarative")


@dataclass(frozen=True)
class SSRConfig:
    """Immutable bridge configuration."""

    # Path or dotted name of the render module
    module_path: str
    # Explicit module convention; None defers to the manifest, then "exports"
    module_kind: ModuleKind | None = None
    render_timeout_s: float | None = None
    # Load the render module when the server starts
    preload: bool = False


def parse_module_kind(value: Any, field_name: str = "module_kind") -> ModuleKind | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{field_name} must be a string")
    kind = value.strip().lower()
    if kind == "":
        return None
    if kind not in MODULE_KINDS:
        raise ValueError(f"{field_name} must be exports or declarative")
    return cast(ModuleKind, kind)


def load_config(path: Path) -> SSRConfig:
    """
    Load bridge configuration from a JSON file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the config is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"SSR config not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return _parse_config(raw)


def _first(raw: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in raw:
            return raw[name]
    return None


def _parse_config(raw: Any) -> SSRConfig:
    if not isinstance(raw, Mapping):
        raise ValueError("config must be an object")

    module_path = _first(raw, "modulePath", "module_path")
    if not isinstance(module_path, str) or not module_path.strip():
        raise ValueError("modulePath must be a non-empty string")

    module_kind = parse_module_kind(_first(raw, "moduleKind", "module_kind"), "moduleKind")

    timeout = _first(raw, "renderTimeoutS", "render_timeout_s")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("renderTimeoutS must be a positive number")
        timeout = float(timeout)

    preload = raw.get("preload", False)
    if not isinstance(preload, bool):
        raise ValueError("preload must be boolean")

    return SSRConfig(
        module_path=module_path.strip(),
        module_kind=module_kind,
        render_timeout_s=timeout,
        preload=preload,
    )


def _env_bool(name: str) -> bool | None:
    raw_val = os.getenv(name)
    if raw_val is None:
        return None
    val = raw_val.strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return None


def _env_float(name: str) -> float | None:
    raw_val = os.getenv(name)
    if raw_val is None:
        return None
    try:
        value = float(raw_val.strip())
    except ValueError:
        return None
    return value if value > 0 else None


def _apply_env(config: SSRConfig) -> SSRConfig:
    overrides: dict[str, Any] = {}
    env_path = os.getenv("SSR_BRIDGE_MODULE_PATH", "").strip()
    if env_path:
        overrides["module_path"] = env_path
    env_kind = os.getenv("SSR_BRIDGE_MODULE_KIND")
    if env_kind is not None and env_kind.strip():
        overrides["module_kind"] = parse_module_kind(env_kind, "SSR_BRIDGE_MODULE_KIND")
    env_timeout = _env_float("SSR_BRIDGE_RENDER_TIMEOUT_S")
    if env_timeout is not None:
        overrides["render_timeout_s"] = env_timeout
    env_preload = _env_bool("SSR_BRIDGE_PRELOAD")
    if env_preload is not None:
        overrides["preload"] = env_preload
    return replace(config, **overrides) if overrides else config


def config_from_env() -> SSRConfig:
    """Build config from SSR_BRIDGE_* variables alone."""
    module_path = os.getenv("SSR_BRIDGE_MODULE_PATH", "").strip()
    if not module_path:
        raise ValueError("SSR_BRIDGE_MODULE_PATH required")
    return _apply_env(SSRConfig(module_path=module_path))


@lru_cache(maxsize=1)
def get_config() -> SSRConfig:
    """
    Get cached configuration.

    Reads the JSON file named by SSR_BRIDGE_CONFIG when set (environment
    values still override it), otherwise the environment alone.
    """
    config_file = os.getenv("SSR_BRIDGE_CONFIG", "").strip()
    if config_file:
        return _apply_env(load_config(Path(config_file)))
    return config_from_env()


def reset_config_cache() -> None:
    """Reset config cache. Only for testing."""
    get_config.cache_clear()
