"""
Pytest configuration and fixtures.

This file provides pytest-specific configuration and fixtures.
For standard test utilities, see tests/__init__.py
"""

import functools

import pytest

from database.database import build_engine, build_session_factory
from database.models import Base
from database.uow import pipeline_uow


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "db: marks tests as requiring database (deselect with '-m \"not db\"')"
    )


@pytest.fixture
def db_engine(tmp_path):
    """
    Function-scoped SQLite engine backed by a file in tmp_path.

    A file database (not :memory:) is used so the upsert store's worker
    threads all see the same tables.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the per-test SQLite database."""
    return build_session_factory(db_engine)


@pytest.fixture
def uow_factory(session_factory):
    """Zero-argument unit-of-work factory, as wired by AppContext."""
    return functools.partial(pipeline_uow, session_factory)
