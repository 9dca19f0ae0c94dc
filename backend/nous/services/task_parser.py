"""Natural-language task parser backed by an LLM completion.

Examples of the utterances this handles:

- "Call mom tomorrow at 3pm" -> task with due date/time
- "Buy groceries @errands" -> task with context
- "Finish report #work high priority" -> task with project and priority
- "Water plants every monday" -> recurring task

Language understanding is delegated to a text-completion capability; the code
here builds the prompt and validates whatever comes back, because the
completion is untrusted.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional, Protocol, Union

import openai
from pydantic import BaseModel, Field

from nous.core.config import settings

logger = logging.getLogger(__name__)

TASK_TYPES = ("task", "note", "reminder", "idea")
PRIORITIES = ("high", "medium", "low")
CONTEXTS = ("home", "work", "errands", "phone", "computer", "anywhere")
RECURRENCE_PATTERNS = ("daily", "weekdays", "weekly", "biweekly", "monthly")
DEFAULT_CONFIDENCE = 0.8

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_FENCE_RE = re.compile(r"```(?:json)?\n?|\n?```")


class Recurrence(BaseModel):
    pattern: Literal["daily", "weekdays", "weekly", "biweekly", "monthly"]
    days_of_week: Optional[List[int]] = Field(default=None, description="0=Sunday .. 6=Saturday")
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)


class ParsedTask(BaseModel):
    """Validated task extracted from an utterance."""

    type: Literal["task", "note", "reminder", "idea"] = "task"
    title: str = Field(..., min_length=1)
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    priority: Optional[Literal["high", "medium", "low"]] = None
    context: Optional[Literal["home", "work", "errands", "phone", "computer", "anywhere"]] = None
    project: Optional[str] = None
    estimated_minutes: Optional[float] = Field(default=None, ge=0)
    is_recurring: bool = False
    recurrence: Optional[Recurrence] = None
    confidence: float = Field(default=DEFAULT_CONFIDENCE, ge=0.0, le=1.0)
    original_input: str


@dataclass(frozen=True)
class ParseOk:
    task: ParsedTask
    kind: Literal["ok"] = "ok"


@dataclass(frozen=True)
class InvalidInput:
    message: str
    kind: Literal["invalid_input"] = "invalid_input"


@dataclass(frozen=True)
class UpstreamUnavailable:
    reason: str
    kind: Literal["upstream_unavailable"] = "upstream_unavailable"


@dataclass(frozen=True)
class ParseFailure:
    raw: str
    kind: Literal["parse_failure"] = "parse_failure"


ParseOutcome = Union[ParseOk, InvalidInput, UpstreamUnavailable, ParseFailure]


class CompletionError(RuntimeError):
    """The completion capability could not produce a response."""


class TextCompleter(Protocol):
    """Returns the raw completion text.

    Implementations raise ``CompletionError`` when no response can be produced.
    ``TimeoutError`` and other ``OSError`` subclasses are also reported as
    upstream unavailability.
    """

    def complete(self, system_prompt: str, user_message: str) -> str:
        ...


class OpenAICompleter:
    """Chat-completions backed completer with a bounded request timeout."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = model or settings.parser_model
        self.temperature = settings.parser_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.parser_max_tokens
        self.timeout = timeout or settings.parser_timeout_seconds
        self._client: Optional[openai.OpenAI] = None

    def _get_client(self) -> openai.OpenAI:
        if self._client is None:
            if not self.api_key:
                raise CompletionError("OPENAI_API_KEY is not configured")
            # Retries are left to the caller.
            self._client = openai.OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        return self._client

    def complete(self, system_prompt: str, user_message: str) -> str:
        client = self._get_client()
        try:
            completion = client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
            )
        except openai.OpenAIError as exc:
            raise CompletionError(f"{type(exc).__name__}: {exc}") from exc
        content = completion.choices[0].message.content if completion.choices else None
        return content or "{}"


@dataclass(frozen=True)
class DateContext:
    today: str
    day_of_week: str
    day_num: int
    month: str
    year: int
    time: str

    def describe(self) -> str:
        return (
            f"Today is {self.day_of_week}, {self.month} {self.day_num}, {self.year} ({self.today}). "
            f"Current time: {self.time}."
        )


_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def build_date_context(now: datetime) -> DateContext:
    """Grounding for relative dates, all fields taken from the same instant."""
    return DateContext(
        today=now.date().isoformat(),
        day_of_week=_DAY_NAMES[now.weekday()],
        day_num=now.day,
        month=_MONTH_NAMES[now.month - 1],
        year=now.year,
        time=now.strftime("%H:%M"),
    )


_PROMPT_TEMPLATE = """You are a task parser. Extract structured data from natural language task input.

Current date context:
{date_context}

Return a JSON object with these fields:
{{
  "type": "task" | "note" | "reminder" | "idea",
  "title": "Clean, actionable title",
  "dueDate": "YYYY-MM-DD or null",
  "dueTime": "HH:MM (24h) or null",
  "priority": "high" | "medium" | "low" | null,
  "context": "home" | "work" | "errands" | "phone" | "computer" | "anywhere" | null,
  "project": "project name if mentioned or null",
  "estimatedMinutes": number or null,
  "isRecurring": boolean,
  "recurrence": {{
    "pattern": "daily" | "weekdays" | "weekly" | "biweekly" | "monthly" | null,
    "daysOfWeek": [0-6] for weekly (0=Sunday) or null,
    "dayOfMonth": 1-31 for monthly or null
  }} | null,
  "confidence": 0.0-1.0
}}

Rules:
- "tomorrow" = next day from today
- "next week" = 7 days from today
- "monday" = next Monday (or today if today is Monday)
- "@home", "@work", "@errands", "@phone", "@computer", "@anywhere" = context
- "#project" or "for project X" = project name
- "high priority", "urgent", "asap" = high priority
- "every day", "daily" = daily recurrence
- "every monday" = weekly on Monday
- "every month on the 15th" = monthly on 15th
- If no time specified but task implies urgency, don't invent a time
- estimatedMinutes: "quick" = 15, "30 min" = 30, "1 hour" = 60

ONLY return the JSON object, no explanation."""


def build_system_prompt(date_context: DateContext) -> str:
    return _PROMPT_TEMPLATE.format(date_context=date_context.describe())


def strip_code_fences(content: str) -> str:
    return _FENCE_RE.sub("", content).strip()


def parse_utterance(text: str, now: datetime, completer: TextCompleter) -> ParseOutcome:
    """Turn an utterance into a validated ``ParsedTask`` or a typed failure."""
    if not text or not text.strip():
        return InvalidInput("Missing input text")

    system_prompt = build_system_prompt(build_date_context(now))
    try:
        content = completer.complete(system_prompt, text)
    except (CompletionError, OSError) as exc:
        logger.warning("Task parser completion failed: %s", exc)
        return UpstreamUnavailable(str(exc))

    try:
        payload = json.loads(strip_code_fences(content))
    except ValueError:
        logger.error("Failed to parse AI response: %r", content)
        return ParseFailure(raw=content)
    if not isinstance(payload, dict):
        logger.error("AI response was not a JSON object: %r", content)
        return ParseFailure(raw=content)

    return ParseOk(normalize_parsed_task(payload, text))


def normalize_parsed_task(payload: Dict[str, Any], original_input: str) -> ParsedTask:
    """Coerce an untrusted completion payload into a ``ParsedTask``.

    Enum fields survive only on an exact match, typed fields only when
    well-formed; anything else becomes absent. ``original_input`` is always the
    caller's text.
    """
    is_recurring = bool(payload.get("isRecurring"))
    return ParsedTask(
        type=_enum(payload.get("type"), TASK_TYPES) or "task",
        title=_non_blank(payload.get("title")) or original_input,
        due_date=_iso_date(payload.get("dueDate")),
        due_time=_clock_time(payload.get("dueTime")),
        priority=_enum(payload.get("priority"), PRIORITIES),
        context=_enum(payload.get("context"), CONTEXTS),
        project=_non_blank(payload.get("project")),
        estimated_minutes=_non_negative_number(payload.get("estimatedMinutes")),
        is_recurring=is_recurring,
        recurrence=_recurrence(payload.get("recurrence")) if is_recurring else None,
        confidence=_confidence(payload.get("confidence")),
        original_input=original_input,
    )


def _is_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


def _enum(value: Any, allowed: tuple[str, ...]) -> Optional[str]:
    return value if isinstance(value, str) and value in allowed else None


def _non_blank(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _iso_date(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return None
    try:
        date.fromisoformat(value)
    except ValueError:
        return None
    return value


def _clock_time(value: Any) -> Optional[str]:
    if isinstance(value, str) and _TIME_RE.match(value):
        return value
    return None


def _non_negative_number(value: Any) -> Optional[float]:
    if _is_number(value) and value >= 0:
        return value
    return None


def _confidence(value: Any) -> float:
    if not _is_number(value):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


def _recurrence(value: Any) -> Optional[Recurrence]:
    if not isinstance(value, dict):
        return None
    pattern = _enum(value.get("pattern"), RECURRENCE_PATTERNS)
    if pattern is None:
        return None
    raw_days = value.get("daysOfWeek")
    days: List[int] = []
    if isinstance(raw_days, list):
        days = [
            day for day in raw_days
            if isinstance(day, int) and not isinstance(day, bool) and 0 <= day <= 6
        ]
    day_of_month = value.get("dayOfMonth")
    if not (isinstance(day_of_month, int) and not isinstance(day_of_month, bool) and 1 <= day_of_month <= 31):
        day_of_month = None
    return Recurrence(pattern=pattern, days_of_week=days or None, day_of_month=day_of_month)


@lru_cache
def get_task_completer() -> TextCompleter:
    """Process-wide completer used by the API; tests override this dependency."""
    return OpenAICompleter()
