"""Root pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import sys
import textwrap
from pathlib import Path

import pytest

from stillframe.config import runtime
from stillframe.config.settings import get_extraction_settings
from stillframe.process_registry import ProcessRegistry
from tests.helpers.fake_subprocess import FakeSpawner


@pytest.fixture(autouse=True)
def _isolate_configuration(monkeypatch):
    """Keep .env files and cached settings from leaking between tests."""
    monkeypatch.setattr(runtime, "_DOTENV_CANDIDATES", ())
    runtime._DEFAULT_VALUES = None
    get_extraction_settings.cache_clear()
    yield
    runtime._DEFAULT_VALUES = None
    get_extraction_settings.cache_clear()


@pytest.fixture
def registry() -> ProcessRegistry:
    return ProcessRegistry()


@pytest.fixture
def fake_spawner(monkeypatch):
    """Return an installer that routes the running loop's ``subprocess_exec`` to fakes.

    Call it from inside the async test so it patches the loop the test runs on.
    """

    def install() -> FakeSpawner:
        loop = asyncio.get_running_loop()
        spawner = FakeSpawner(loop)
        monkeypatch.setattr(loop, "subprocess_exec", spawner)
        return spawner

    return install


@pytest.fixture
def python_script(tmp_path):
    """Write a Python snippet to disk and return the argv that runs it."""

    def factory(source: str, *args: str) -> list[str]:
        script = tmp_path / f"script_{len(list(tmp_path.glob('script_*.py')))}.py"
        script.write_text(textwrap.dedent(source))
        return [sys.executable, str(script), *args]

    return factory


@pytest.fixture
def output_dir(tmp_path) -> Path:
    target = tmp_path / "frames"
    target.mkdir()
    return target
