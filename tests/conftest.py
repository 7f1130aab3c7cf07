"""Pytest configuration and shared fixtures for docgraph tests."""

import pytest

from docgraph.objects import ObjectsService
from docgraph.observability import EventRecorder, reset_event_recorder
from docgraph.storage import ObjectStore


@pytest.fixture(autouse=True)
def _clean_global_recorder():
    """Give every test a fresh global event recorder."""
    reset_event_recorder()
    yield
    reset_event_recorder()


@pytest.fixture
def database_url(tmp_path):
    """Provide a SQLite URL inside the test's temporary directory."""
    return f"sqlite:///{tmp_path / 'objects.db'}"


@pytest.fixture
def store(database_url):
    """Provide an empty object store, disposed after the test."""
    with ObjectStore(database_url) as object_store:
        yield object_store


@pytest.fixture
def recorder():
    """Provide an isolated event recorder scoped to the service."""
    return EventRecorder("objects")


@pytest.fixture
def events(recorder):
    """Collect every event recorded through the ``recorder`` fixture."""
    collected = []
    recorder.register(collected.append)
    return collected


@pytest.fixture
def service(store, recorder):
    """Provide an ObjectsService over the temporary store."""
    return ObjectsService(store, recorder=recorder)


@pytest.fixture
def note_document():
    """Provide a small ActivityStreams-like document."""
    return {
        "type": "Note",
        "content": "Hello world",
        "tag": ["intro", "greeting"],
        "attributedTo": {
            "type": "Person",
            "name": "alice",
        },
    }
