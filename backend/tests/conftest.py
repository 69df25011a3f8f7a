"""
This module provides test fixtures for the backend tests.
"""

import pytest
from itertools import count

from backend import llm_client, retrieval
from backend.persistence import InMemorySessionStore
from backend.sessions import SessionTracker


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Point every client at fake credentials so no test can reach a real API"""
    monkeypatch.setenv("GROQ_API_KEY", "mock_groq_key")
    monkeypatch.setenv("TAVILY_API_KEY", "mock_tavily_key")

    monkeypatch.setattr(llm_client, "LLM_PROVIDER", "groq")
    monkeypatch.setattr(llm_client, "GROQ_API_KEY", "mock_groq_key")
    monkeypatch.setattr(llm_client, "GEMINI_API_KEY", "mock_gemini_key")
    monkeypatch.setattr(retrieval, "TAVILY_API_KEY", "mock_tavily_key")
    yield


@pytest.fixture
def tracker():
    """Tracker over a fresh in-memory store with predictable ids"""
    ids = count(1)
    return SessionTracker(InMemorySessionStore(), id_factory=lambda: f"sess_test_{next(ids)}")
