"""Shared pytest fixtures for bc4-core tests.

Fixture Organization:
    - Environment isolation: BC4_* variables cleared, config cache reset
    - Rate limiter and fake clock fixtures
    - Mock-transport client fixtures live in bc4_test_helpers
"""

import os
import sys
from pathlib import Path

import pytest

# Make bc4_test_helpers importable from nested test directories
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from bc4.api.ratelimit import RateLimiter  # noqa: E402
from bc4.config import reset_config  # noqa: E402


# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Clear BC4_* variables and run from an empty directory (no stray .env)."""
    for key in list(os.environ):
        if key.upper().startswith("BC4_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


# =============================================================================
# Rate Limiter Fixtures
# =============================================================================


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    """4 tokens per second: one token every 0.25s (exact in binary floating point)."""
    return RateLimiter(max_tokens=4, window_seconds=1.0, clock=clock)


@pytest.fixture
def unlimited():
    """Limiter large enough that tests never wait."""
    return RateLimiter(max_tokens=1000, window_seconds=1.0)
