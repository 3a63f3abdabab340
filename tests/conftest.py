"""
Pytest fixtures and configuration for the generation queue test suite.
"""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

# Add project root to path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.selectors import UiSelectors
from core.state import BackoffState, RunAccounting
from tests.utils.fake_page import FakeElement, FakePage


# === Time ===

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSleep:
    """Records sleeps and advances the paired clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


# === State ===

@pytest.fixture
def backoff():
    return BackoffState()


@pytest.fixture
def accounting():
    return RunAccounting()


# === Page fixtures ===

@pytest.fixture
def selectors():
    """Short selectors so tests can register elements by name."""
    return UiSelectors(
        in_progress_count=".in-progress",
        prompt_textarea="textarea",
        submit_button='button.create, button.create-alt',
        loading_overlay=".loading",
        drafts_in_progress_spinner=".spinner",
        drafts_grid=".grid",
        drafts_tile=".tile",
        settings_menu=".menu",
    )


@pytest.fixture
def page():
    return FakePage()


@pytest.fixture
def composer_page(selectors):
    """Page with a prompt field and an enabled submit button."""
    p = FakePage()
    p.add(selectors.prompt_textarea, FakeElement())
    p.add("button.create", FakeElement(text="Create video"))
    return p


@pytest.fixture
def mock_browser_manager():
    """Mock CDP browser manager for testing."""
    mock = MagicMock()
    mock.connect = AsyncMock()
    mock.close = AsyncMock()
    mock.get_or_create_page = AsyncMock()
    mock.find_target_page = MagicMock(return_value=None)
    return mock


# === Markers ===

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "admission: Admission loop gate and accounting tests")
    config.addinivalue_line("markers", "browser: Tests against fake Playwright pages")
    config.addinivalue_line("markers", "resilience: Failure mode tests")
