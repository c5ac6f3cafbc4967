#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests can be run with standard Python tools:

    # Run all tests
    python -m pytest tests/ -v

    # Run only tests that need no database session
    python -m pytest tests/ -v -m "not db"

    # Run only repository/store tests (SQLite-backed)
    python -m pytest tests/ -v -m "db"

Database Setup:
    Unit tests never need PostgreSQL. Tests marked ``db`` use the
    ``session_factory`` fixture from tests/conftest.py, which creates the
    tables in a throwaway SQLite file per test.
"""

from datetime import datetime, timezone
from typing import Any, Dict

FIXED_NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def raw_posting(**overrides: Any) -> Dict[str, Any]:
    """A complete raw posting as a scraper would hand it in."""
    posting = {
        "title": "Graduate Analyst",
        "company": "Acme Capital",
        "location": "London, UK",
        "description": "Join our graduate programme in the finance team. Fluent English required.",
        "job_url": "https://jobs.example.com/acme/graduate-analyst",
        "site": "linkedin",
        "date_posted": "2026-02-27T08:00:00+00:00",
    }
    posting.update(overrides)
    return posting
