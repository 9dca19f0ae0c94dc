from __future__ import annotations

import pytest

from nous.observability import metrics, tracing


class RecordingTrace:
    def __init__(self, name, metadata):
        self.name = name
        self.metadata = metadata
        self.ended_with = "open"

    def end(self, output=None):
        self.ended_with = output


class RecordingClient:
    def __init__(self):
        self.traces = []

    def trace(self, name, metadata=None):
        span = RecordingTrace(name, metadata)
        self.traces.append(span)
        return span


def test_trace_yields_none_when_disabled(monkeypatch):
    monkeypatch.setattr(tracing, "get_opik_client", lambda: None)
    with tracing.trace("noop", metadata={"a": 1}) as span:
        assert span is None


def test_trace_records_metadata_and_closes(monkeypatch):
    client = RecordingClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: client)
    with tracing.trace("emotions.log", metadata={"emotion": "joy"}, user_id="u1", request_id="r1") as span:
        assert span is client.traces[0]
    assert span.metadata == {"emotion": "joy", "user_id": "u1", "request_id": "r1"}
    assert span.ended_with is None


def test_trace_marks_errors_and_reraises(monkeypatch):
    client = RecordingClient()
    monkeypatch.setattr(tracing, "get_opik_client", lambda: client)
    with pytest.raises(KeyError):
        with tracing.trace("boom"):
            raise KeyError("x")
    assert client.traces[0].ended_with == {"error": "KeyError"}


def test_log_metric_logs_and_mirrors(monkeypatch, caplog):
    client = RecordingClient()
    monkeypatch.setattr(metrics, "get_opik_client", lambda: client)
    caplog.set_level("INFO", logger="nous.metrics")
    metrics.log_metric("parse_task.outcome", 1, metadata={"outcome": "ok"})
    assert "parse_task.outcome=1" in caplog.text
    assert client.traces[0].name == "metric.parse_task.outcome"
    assert client.traces[0].metadata == {"value": 1, "outcome": "ok"}
