"""Pytest conftest — path setup for metarollup and helpers, shared fixtures."""

import sys
from pathlib import Path

import pytest

# scripts/ holds the metarollup package
SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

# tests/ holds helpers.py
TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))


@pytest.fixture
def write_events():
    """One event list shared by a FakeStore and a FakeTable, in write order."""
    return []
