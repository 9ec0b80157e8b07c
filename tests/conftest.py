"""
Pytest configuration for the docsbot test suite.

Configures fixtures for settings and the in-memory service stand-ins
defined in fakes.py.
"""
import pytest

from docsbot.config import Settings
from fakes import FakeEmbedder, FakeGenerator, FakeStore, make_settings


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()
