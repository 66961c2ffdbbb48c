"""Shared fixtures and fake collaborators for playtest tests."""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from playtest.config import settings
from playtest.models.action_result import AgentResult
from playtest.models.test_result import CUAUsage
from playtest.services.container import create_service_container
from playtest.services.progress import SilentProgressReporter
from playtest.validation.validator import validate


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")


class FakeLocator:
    def __init__(self, label: str):
        self.label = label


class FakeSession:
    """In-memory stand-in for BrowserController."""

    def __init__(self, elements: Optional[Dict[str, int]] = None):
        self.elements = elements or {}
        self.connected = True
        self.initialized = 0
        self.loaded: List[str] = []
        self.load_error: Optional[Exception] = None
        self.click_text_error: Optional[Exception] = None
        self.press_errors: List[Exception] = []
        self.clicked: List[str] = []
        self.pressed: List[str] = []
        self.held: List[tuple] = []
        self.positions: List[tuple] = []
        self.located: List[tuple] = []
        self.console_logs: List[str] = []
        self.issues = []
        self.restarts = 0

    async def initialize(self):
        self.initialized += 1

    async def load_game(self, url, spec):
        if self.load_error is not None:
            raise self.load_error
        self.loaded.append(url)

    async def locate(self, label, timeout=None):
        self.located.append((label, timeout))
        return [FakeLocator(label) for _ in range(self.elements.get(label, 0))]

    async def click_locator(self, locator, timeout=None):
        self.clicked.append(locator.label)

    async def click_text(self, text, timeout=None):
        if self.click_text_error is not None:
            raise self.click_text_error
        self.clicked.append(f"text:{text}")

    async def click_at_position(self, x, y):
        self.positions.append((x, y))

    async def press_key(self, key):
        if self.press_errors:
            raise self.press_errors.pop(0)
        self.pressed.append(key)

    async def key_down(self, key):
        pass

    async def key_up(self, key):
        pass

    async def hold_keys(self, keys, duration_ms):
        self.held.append((list(keys), duration_ms))

    async def screenshot(self, path, full_page=False):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_bytes(b"\x89PNG fake")
        return path

    async def screenshot_bytes(self):
        return b"\x89PNG fake"

    def get_console_logs(self):
        return list(self.console_logs)

    def get_issues(self):
        return list(self.issues)

    def is_connected(self):
        return self.connected

    async def restart(self):
        self.restarts += 1
        self.connected = True

    async def cleanup(self):
        self.connected = False


class FakeAgent:
    """Stand-in for ComputerUseAgent."""

    def __init__(self, browser=None, success: bool = True, init_error: Optional[Exception] = None):
        self.browser = browser
        self.success = success
        self.init_error = init_error
        self.initialized_with = None
        self.instructions: List[tuple] = []

    async def initialize(self, model, max_steps=3):
        if self.init_error is not None:
            raise self.init_error
        self.initialized_with = (model, max_steps)

    async def execute(self, instruction, max_steps=None, timeout_ms=None, single_click=False):
        self.instructions.append(("execute", instruction, max_steps, timeout_ms))
        return AgentResult(success=self.success, steps_executed=1, message="clicked" if self.success else "no target")

    async def execute_agent(self, goal, max_steps=None, timeout_ms=None):
        self.instructions.append(("agent", goal, max_steps, timeout_ms))
        return AgentResult(success=self.success, steps_executed=max_steps or 0, message="done")

    def get_usage_metrics(self):
        return CUAUsage(total_calls=len(self.instructions))


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch, tmp_path):
    """Keep backoff delays short and results inside the test's tmp dir."""
    monkeypatch.setattr(settings, "ACTION_RETRY_BASE_DELAY_MS", 1)
    monkeypatch.setattr(settings, "ACTION_RETRY_MAX_DELAY_MS", 5)
    monkeypatch.setattr(settings, "RUN_RETRY_BASE_DELAY_MS", 1)
    monkeypatch.setattr(settings, "RUN_RETRY_MAX_DELAY_MS", 5)
    monkeypatch.setattr(settings, "CUA_ENABLED", True)
    monkeypatch.setattr(settings, "RESULTS_DIR", tmp_path / "results")


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def session_dir(tmp_path):
    return tmp_path / "session"


@pytest.fixture
def make_container(session_dir):
    """Build a ServiceContainer around fakes for a raw config."""

    async def _make(raw_config, session=None, agent=None):
        spec = validate(raw_config)
        browser = session or FakeSession()

        def factory(b):
            if agent is None:
                return FakeAgent(b)
            agent.browser = b
            return agent

        return await create_service_container(
            spec,
            session_dir,
            progress_reporter=SilentProgressReporter(),
            browser=browser,
            cua_factory=factory,
        )

    return _make
