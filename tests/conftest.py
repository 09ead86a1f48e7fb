"""Global test configuration for Toolbench."""

import os

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings():
    """Drop TOOLBENCH_* overrides and reset the cached Settings per test.

    Tests that need different settings pass a Settings instance
    explicitly, so nothing from the developer's shell leaks in.
    """
    from toolbench.config import get_settings

    saved = {k: v for k, v in os.environ.items() if k.startswith("TOOLBENCH_")}
    for key in saved:
        os.environ.pop(key)
    get_settings.cache_clear()

    yield

    os.environ.update(saved)
    get_settings.cache_clear()


@pytest.fixture
def registry():
    """Empty registry backed by its own in-memory store."""
    from toolbench.registry import ToolRegistry

    return ToolRegistry()
