"""Shared fixtures for the Nekovibe backend tests."""

import os
import sys

# Rate limits would leak between tests through the shared in-memory limiter
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, os.path.dirname(__file__))

import pytest

from fake_supabase import FakeSupabase, StubModel
from nekovibe.storage import FeedbackStore


@pytest.fixture
def fake_client():
    return FakeSupabase()


@pytest.fixture
def store(fake_client):
    return FeedbackStore(fake_client)


@pytest.fixture
def model():
    return StubModel()
