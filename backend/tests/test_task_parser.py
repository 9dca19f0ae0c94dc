from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import openai
import pytest

from nous.services import task_parser
from nous.services.task_parser import (
    CompletionError,
    InvalidInput,
    OpenAICompleter,
    ParseFailure,
    ParseOk,
    UpstreamUnavailable,
    build_date_context,
    build_system_prompt,
    parse_utterance,
    strip_code_fences,
)

NOW = datetime(2024, 6, 1, 14, 5, tzinfo=timezone.utc)


class FakeCompleter:
    def __init__(self, response=None, error: Exception | None = None):
        self.response = response
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def complete(self, system_prompt: str, user_message: str) -> str:
        self.calls.append((system_prompt, user_message))
        if self.error:
            raise self.error
        if isinstance(self.response, str):
            return self.response
        return json.dumps(self.response)


def _parse(response, text="Call mom tomorrow URGENT") -> task_parser.ParsedTask:
    outcome = parse_utterance(text, NOW, FakeCompleter(response))
    assert isinstance(outcome, ParseOk), outcome
    return outcome.task


def test_build_date_context_uses_one_instant():
    context = build_date_context(NOW)
    assert context.today == "2024-06-01"
    assert context.day_of_week == "Saturday"
    assert context.day_num == 1
    assert context.month == "June"
    assert context.year == 2024
    assert context.time == "14:05"


def test_system_prompt_carries_date_context_and_rules():
    prompt = build_system_prompt(build_date_context(NOW))
    assert "Today is Saturday, June 1, 2024 (2024-06-01). Current time: 14:05." in prompt
    assert '"next week" = 7 days from today' in prompt
    assert '"quick" = 15' in prompt
    assert "ONLY return the JSON object" in prompt


@pytest.mark.parametrize("text", ["", "   ", "\n"])
def test_empty_input_is_rejected_without_calling_upstream(text):
    completer = FakeCompleter({"title": "never"})
    outcome = parse_utterance(text, NOW, completer)
    assert isinstance(outcome, InvalidInput)
    assert outcome.kind == "invalid_input"
    assert completer.calls == []


def test_input_is_sent_verbatim_as_user_message():
    completer = FakeCompleter({"title": "Buy milk"})
    parse_utterance("  buy milk @errands ", NOW, completer)
    assert len(completer.calls) == 1
    system_prompt, user_message = completer.calls[0]
    assert user_message == "  buy milk @errands "
    assert "2024-06-01" in system_prompt


def test_invalid_priority_case_is_dropped_and_title_passes_through():
    text = "call mom sunday URGENT"
    task = _parse({"title": "Call mom", "dueDate": "2024-06-02", "priority": "URGENT"}, text)
    assert task.priority is None
    assert task.title == "Call mom"
    assert task.due_date == "2024-06-02"
    assert task.original_input == text


def test_recurrence_dropped_when_not_flagged_recurring():
    task = _parse({"title": "Water plants", "isRecurring": False, "recurrence": {"pattern": "weekly", "daysOfWeek": [1]}})
    assert task.is_recurring is False
    assert task.recurrence is None


def test_recurrence_kept_and_cleaned_when_recurring():
    task = _parse(
        {
            "title": "Water plants",
            "isRecurring": True,
            "recurrence": {"pattern": "weekly", "daysOfWeek": [1, 9, "2", True, 6], "dayOfMonth": 40},
        }
    )
    assert task.is_recurring is True
    assert task.recurrence is not None
    assert task.recurrence.pattern == "weekly"
    assert task.recurrence.days_of_week == [1, 6]
    assert task.recurrence.day_of_month is None


def test_recurrence_with_unknown_pattern_becomes_absent():
    task = _parse({"title": "x", "isRecurring": 1, "recurrence": {"pattern": "fortnightly"}})
    assert task.is_recurring is True
    assert task.recurrence is None


def test_monthly_recurrence_keeps_day_of_month():
    task = _parse({"title": "Pay rent", "isRecurring": True, "recurrence": {"pattern": "monthly", "dayOfMonth": 15}})
    assert task.recurrence.pattern == "monthly"
    assert task.recurrence.day_of_month == 15
    assert task.recurrence.days_of_week is None


def test_empty_payload_gets_defaults():
    text = "something vague"
    task = _parse({}, text)
    assert task.type == "task"
    assert task.title == text
    assert task.confidence == 0.8
    assert task.is_recurring is False
    assert task.due_date is None
    assert task.due_time is None
    assert task.priority is None
    assert task.context is None
    assert task.project is None
    assert task.estimated_minutes is None
    assert task.original_input == text


@pytest.mark.parametrize("bad_type", ["todo", "TASK", None, 3])
def test_unknown_type_defaults_to_task(bad_type):
    assert _parse({"type": bad_type, "title": "x"}).type == "task"


@pytest.mark.parametrize("kind", ["task", "note", "reminder", "idea"])
def test_known_types_pass_through(kind):
    assert _parse({"type": kind, "title": "x"}).type == kind


@pytest.mark.parametrize("title", ["", "   ", None, 42])
def test_blank_or_mistyped_title_falls_back_to_input(title):
    assert _parse({"title": title}, "remember the milk").title == "remember the milk"


def test_context_requires_exact_enum_member():
    assert _parse({"title": "x", "context": "work"}).context == "work"
    assert _parse({"title": "x", "context": "Work"}).context is None
    assert _parse({"title": "x", "context": "@work"}).context is None


@pytest.mark.parametrize(
    "value, expected",
    [("2024-06-02", "2024-06-02"), ("2024-02-30", None), ("tomorrow", None), ("2024-6-2", None), (20240602, None)],
)
def test_due_date_must_be_a_real_iso_date(value, expected):
    assert _parse({"title": "x", "dueDate": value}).due_date == expected


@pytest.mark.parametrize(
    "value, expected",
    [("15:00", "15:00"), ("09:30", "09:30"), ("24:00", None), ("3pm", None), ("9:30", None), (1500, None)],
)
def test_due_time_must_be_24h_clock(value, expected):
    assert _parse({"title": "x", "dueTime": value}).due_time == expected


@pytest.mark.parametrize(
    "value, expected",
    [(30, 30), (0, 0), (7.5, 7.5), (-5, None), ("30", None), (True, None), (None, None), (10**400, None)],
)
def test_estimated_minutes_must_be_non_negative_number(value, expected):
    assert _parse({"title": "x", "estimatedMinutes": value}).estimated_minutes == expected


@pytest.mark.parametrize(
    "value, expected",
    [(0.35, 0.35), (0, 0.0), ("high", 0.8), (None, 0.8), (True, 0.8), (1.7, 1.0), (-1, 0.0), (10**400, 0.8)],
)
def test_confidence_defaults_and_stays_in_unit_range(value, expected):
    assert _parse({"title": "x", "confidence": value}).confidence == pytest.approx(expected)


def test_project_must_be_non_blank_string():
    assert _parse({"title": "x", "project": "work"}).project == "work"
    assert _parse({"title": "x", "project": ""}).project is None
    assert _parse({"title": "x", "project": ["a"]}).project is None


def test_title_and_project_pass_through_verbatim():
    task = _parse({"title": "  Call mom  ", "project": " Home "})
    assert task.title == "  Call mom  "
    assert task.project == " Home "


def test_oversized_integer_in_response_is_parse_failure():
    content = '{"title": "x", "confidence": ' + "1" * 5000 + "}"
    outcome = parse_utterance("buy milk", NOW, FakeCompleter(content))
    assert isinstance(outcome, ParseFailure)
    assert outcome.raw == content


def test_huge_integer_fields_are_dropped_not_raised():
    content = '{"title": "x", "estimatedMinutes": 1' + "0" * 400 + "}"
    task = _parse(content)
    assert task.estimated_minutes is None


def test_original_input_ignores_upstream_value():
    task = _parse({"title": "x", "originalInput": "forged"}, "the real text")
    assert task.original_input == "the real text"


@pytest.mark.parametrize(
    "content",
    [
        '```json\n{"title": "Buy milk", "context": "errands"}\n```',
        '```\n{"title": "Buy milk", "context": "errands"}\n```',
        '  {"title": "Buy milk", "context": "errands"}  ',
    ],
)
def test_code_fences_are_stripped(content):
    task = _parse(content, "buy milk @errands")
    assert task.title == "Buy milk"
    assert task.context == "errands"


def test_strip_code_fences_leaves_plain_json_alone():
    assert strip_code_fences('{"a": 1}') == '{"a": 1}'


@pytest.mark.parametrize("content", ["Sure! Here is your task.", '{"title": ', "[1, 2, 3]", '"just a string"'])
def test_undecodable_or_non_object_response_is_parse_failure(content):
    outcome = parse_utterance("buy milk", NOW, FakeCompleter(content))
    assert isinstance(outcome, ParseFailure)
    assert outcome.raw == content


@pytest.mark.parametrize("error", [CompletionError("boom"), TimeoutError("slow"), ConnectionError("down")])
def test_upstream_errors_are_reported(error):
    outcome = parse_utterance("buy milk", NOW, FakeCompleter(error=error))
    assert isinstance(outcome, UpstreamUnavailable)
    assert outcome.kind == "upstream_unavailable"


def test_low_confidence_is_not_an_error():
    task = _parse({"title": "hmm", "confidence": 0.05})
    assert task.confidence == pytest.approx(0.05)


def test_openai_completer_requires_api_key():
    completer = OpenAICompleter(api_key="")
    with pytest.raises(CompletionError):
        completer.complete("system", "user")


def test_openai_completer_passes_configured_parameters(monkeypatch):
    captured = {}

    def create(**kwargs):
        captured.update(kwargs)
        message = SimpleNamespace(content='{"title": "Call mom"}')
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    fake_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    completer = OpenAICompleter(api_key="sk-test", model="gpt-test", temperature=0.3, max_tokens=500, timeout=5)
    monkeypatch.setattr(completer, "_get_client", lambda: fake_client)

    assert completer.complete("system prompt", "call mom") == '{"title": "Call mom"}'
    assert captured["model"] == "gpt-test"
    assert captured["temperature"] == 0.3
    assert captured["max_tokens"] == 500
    assert captured["messages"] == [
        {"role": "system", "content": "system prompt"},
        {"role": "user", "content": "call mom"},
    ]


def test_openai_completer_wraps_sdk_errors(monkeypatch):
    def create(**kwargs):
        raise openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    fake_client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    completer = OpenAICompleter(api_key="sk-test")
    monkeypatch.setattr(completer, "_get_client", lambda: fake_client)

    outcome = parse_utterance("call mom", NOW, completer)
    assert isinstance(outcome, UpstreamUnavailable)
    assert "APITimeoutError" in outcome.reason
