"""Test setup for annodoc."""

from __future__ import annotations

import itertools
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from annodoc.schemas import DocumentRecord, User  # noqa: E402
from annodoc.store import InMemoryStore  # noqa: E402


@pytest.fixture
def user() -> User:
    """Signed-in collaborator used across tests."""
    return User(id="user-a", display_name="A", email="a@example.com")


@pytest.fixture
def other_user() -> User:
    return User(id="user-b", display_name="B")


@pytest.fixture
def store(user: User) -> InMemoryStore:
    """In-memory store holding one empty document ``doc-1``."""
    memory = InMemoryStore(user=user)
    memory.add_document(DocumentRecord(id="doc-1", user_id=user.id, title="My Doc"))
    return memory


@pytest.fixture
def id_factory():
    """Deterministic id factory: s-1, s-2, ..."""
    counter = itertools.count(1)
    return lambda: f"s-{next(counter)}"
