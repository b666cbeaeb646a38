"""Shared test fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make _helpers importable from test files
sys.path.insert(0, str(Path(__file__).parent))

from _helpers import CountingStore, FakeApi  # noqa: E402

from botrak_session.api.token import TokenSlot  # noqa: E402
from botrak_session.persistence.store import InMemoryBackend  # noqa: E402
from botrak_session.session import SessionManager  # noqa: E402


@pytest.fixture
def tokens() -> TokenSlot:
    return TokenSlot()


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> CountingStore:
    return CountingStore(backend)


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def manager(api: FakeApi, store: CountingStore, tokens: TokenSlot) -> SessionManager:
    return SessionManager(api, store, tokens)
