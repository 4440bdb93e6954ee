"""
Notification Value Objects
==========================

Immutable value objects and pure functions for the notification domain:

- Condition: one step of a rule's condition chain
- ConditionEvaluator: dot-path lookup and left-to-right condition fold
- TemplateRenderer: ``{{variable}}`` substitution
- QuietHoursCalculator: local-time window check
- priority_from_category: template category to notification priority
"""

import re
from datetime import datetime, time, timezone
from typing import Any, List, Literal, Mapping, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field

from dispute_engine.config import NotificationPriority, TemplateCategory
from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class _Missing:
    """Marker for a dot-path segment that does not exist."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


Scalar = Union[bool, int, float, str, None]
ConditionValue = Union[Scalar, List[Scalar]]

OperatorStr = Literal[
    "equals", "not_equals", "greater_than", "less_than", "contains",
    "in", "not_in", "is_null", "is_not_null",
]


class Condition(BaseModel):
    """
    One condition in a rule's chain.

    ``logical_operator`` joins this condition to the result of everything
    before it; it is ignored on the first condition.
    """

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="Dot-separated path into the trigger payload")
    operator: OperatorStr
    value: ConditionValue = None
    logical_operator: Literal["AND", "OR"] = "AND"


def resolve_field(payload: Any, path: str) -> Any:
    """
    Walk ``path`` (dot-separated) through nested mappings.

    Returns ``MISSING`` as soon as a segment is absent or the current
    value is not a mapping.
    """
    value = payload
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return MISSING
        value = value[part]
    return value


class ConditionEvaluator:
    """
    Evaluates rule conditions against a trigger payload.

    Absent fields never raise. Ordering operators on absent, null or
    incomparable values are false.
    """

    @staticmethod
    def evaluate(condition: Condition, payload: Mapping[str, Any]) -> bool:
        actual = resolve_field(payload, condition.field)
        expected = condition.value
        op = condition.operator

        if op == "equals":
            return actual is not MISSING and _same(actual, expected)
        if op == "not_equals":
            return actual is MISSING or not _same(actual, expected)
        if op in ("greater_than", "less_than"):
            if actual is MISSING or actual is None or expected is None:
                return False
            try:
                return actual > expected if op == "greater_than" else actual < expected
            except TypeError:
                return False
        if op == "contains":
            if actual is MISSING or actual is None:
                return False
            return _text(expected).lower() in _text(actual).lower()
        if op == "in":
            return isinstance(expected, (list, tuple)) and actual is not MISSING and _member(actual, expected)
        if op == "not_in":
            return isinstance(expected, (list, tuple)) and (actual is MISSING or not _member(actual, expected))
        if op == "is_null":
            return actual is MISSING or actual is None
        if op == "is_not_null":
            return actual is not MISSING and actual is not None

        return False

    @classmethod
    def evaluate_all(cls, conditions: List[Condition], payload: Mapping[str, Any]) -> bool:
        """Strict left-to-right fold; no precedence. An empty chain matches."""
        if not conditions:
            return True

        result = cls.evaluate(conditions[0], payload)
        for condition in conditions[1:]:
            current = cls.evaluate(condition, payload)
            if condition.logical_operator == "OR":
                result = result or current
            else:
                result = result and current
        return result


def _same(actual: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not equal 1
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected


def _member(actual: Any, values: Union[list, tuple]) -> bool:
    return any(_same(actual, value) for value in values)


def _text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return str(round(value, 2))
    return str(value)


class TemplateRenderer:
    """``{{name}}`` substitution from the top level of the payload."""

    PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

    @classmethod
    def render(cls, pattern: str, payload: Mapping[str, Any]) -> str:
        def substitute(match: re.Match) -> str:
            value = payload.get(match.group(1), MISSING)
            if value is MISSING or value is None:
                return match.group(0)
            return _text(value)

        return cls.PLACEHOLDER.sub(substitute, pattern)


_CATEGORY_PRIORITIES = {
    TemplateCategory.URGENT: NotificationPriority.URGENT,
    TemplateCategory.ERROR: NotificationPriority.HIGH,
    TemplateCategory.WARNING: NotificationPriority.MEDIUM,
    TemplateCategory.SUCCESS: NotificationPriority.LOW,
    TemplateCategory.INFO: NotificationPriority.LOW,
}


def priority_from_category(category: str) -> str:
    return _CATEGORY_PRIORITIES.get(category, NotificationPriority.MEDIUM)


class QuietHoursCalculator:
    """
    Decides whether a moment falls inside a recipient's quiet hours.

    The window is inclusive at both ends. A window whose start is later
    than its end crosses midnight.
    """

    @staticmethod
    def _zone(name: str):
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone, falling back to UTC", extra={"timezone": name})
            return timezone.utc

    @staticmethod
    def _parse(value: str) -> Optional[time]:
        try:
            return datetime.strptime(value, "%H:%M").time()
        except (TypeError, ValueError):
            logger.warning("Invalid quiet hours boundary", extra={"value": value})
            return None

    @classmethod
    def is_quiet(cls, quiet_hours, now: Optional[datetime] = None) -> bool:
        if not quiet_hours.enabled:
            return False

        start = cls._parse(quiet_hours.start)
        end = cls._parse(quiet_hours.end)
        if start is None or end is None:
            return False

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(cls._zone(quiet_hours.timezone)).time().replace(microsecond=0)

        if start <= end:
            return start <= local <= end
        return local >= start or local <= end
