from __future__ import annotations

from pathlib import Path

import pytest

from ssr_bridge.loader import ModuleCache

MODULES_DIR = Path(__file__).parent / "ssr_modules"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def modules_dir() -> Path:
    return MODULES_DIR


@pytest.fixture
def cache() -> ModuleCache:
    return ModuleCache()
