"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from threading import Event

import pytest

# Add repository root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def stop_event():
    """Shared shutdown signal, always set on teardown so no thread outlives a test."""
    event = Event()
    yield event
    event.set()


@pytest.fixture
def failures():
    from utils.failures import FailureManager

    return FailureManager({'threshold': 1000, 'window_seconds': 60})


@pytest.fixture
def registry(failures):
    from core.registry import BroadcastRegistry

    return BroadcastRegistry(failures=failures)
