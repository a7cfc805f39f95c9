"""Shared fixtures and hooks.

Every test runs against a scrubbed environment: no ``.env`` loading and no
``GEMINI_*`` variables, so offline tests can never reach the real API by
accident. Tests marked ``api`` keep the environment and are skipped unless
``ENABLE_API_TESTS`` is set.
"""

from __future__ import annotations

import logging
import os

import pytest

# Offline model id: recorded in requests, never sent anywhere.
GEMINI_MODEL = "gemini-2.5-flash"

# Cheapest model that supports function calling, for api tests.
GEMINI_API_TEST_MODEL = "gemini-2.5-flash-lite"


# =============================================================================
# Environment
# =============================================================================


def _keeps_environment(node: pytest.Item) -> bool:
    return node.get_closest_marker("allow_env_pollution") is not None or (
        node.get_closest_marker("api") is not None
    )


@pytest.fixture(autouse=True)
def no_dotenv(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch):
    """Turn ``dotenv.load_dotenv`` into a no-op (opt out: ``allow_dotenv``)."""
    if request.node.get_closest_marker("allow_dotenv") is None:
        monkeypatch.setattr("dotenv.load_dotenv", lambda *_a, **_kw: False)


@pytest.fixture(autouse=True)
def scrub_gemini_env(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch):
    """Remove ``GEMINI_*`` variables (opt out: ``allow_env_pollution``, ``api``)."""
    if _keeps_environment(request.node):
        return
    for name in [n for n in os.environ if n.startswith("GEMINI_")]:
        monkeypatch.delenv(name)


@pytest.fixture(scope="session", autouse=True)
def quiet_transport_loggers():
    """Keep SDK and HTTP client chatter out of captured logs."""
    for name in ("httpx", "httpcore", "google_genai"):
        logging.getLogger(name).setLevel(logging.WARNING)


# =============================================================================
# Collection
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]):
    """Skip ``api`` tests unless ENABLE_API_TESTS is set."""
    if os.getenv("ENABLE_API_TESTS"):
        return
    skip = pytest.mark.skip(reason="set ENABLE_API_TESTS=1 to run real API tests")
    for item in items:
        if item.get_closest_marker("api") is not None:
            item.add_marker(skip)


# =============================================================================
# Models and credentials
# =============================================================================


@pytest.fixture
def gemini_model() -> str:
    """Model id used by offline tests."""
    return GEMINI_MODEL


@pytest.fixture
def gemini_test_model() -> str:
    """Model id used by real API tests."""
    return GEMINI_API_TEST_MODEL


@pytest.fixture
def gemini_api_key() -> str:
    """The real API key, or skip when none is configured."""
    key = os.getenv("GEMINI_API_KEY")
    if not key:
        pytest.skip("GEMINI_API_KEY not set")
    return key
