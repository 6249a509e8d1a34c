"""Shared pytest fixtures for onsenbook tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402


@pytest.fixture(autouse=True)
def _fast_retries(monkeypatch):
    """Keep transaction retry backoff out of test wall time."""
    monkeypatch.setenv("TXN_RETRY_BASE_DELAY_SECONDS", "0")


@pytest.fixture
def cursor():
    """A MagicMock standing in for a psycopg2 cursor."""
    from .helpers import make_cursor

    return make_cursor()
