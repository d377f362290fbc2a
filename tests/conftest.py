import pytest


@pytest.fixture(autouse=True)
def _no_event_stream(monkeypatch):
    # Keep the bus to its log line; no Redis round trips during unit tests
    monkeypatch.setenv("DISABLE_EVENT_STREAM", "1")
