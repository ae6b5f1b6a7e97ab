"""Actions that wait for tag values or alarm counts to meet a condition."""

from __future__ import annotations

import asyncio
import enum
import inspect
from dataclasses import dataclass
from typing import Awaitable

from hmiaudio.dispatch import Action, AlarmDispatcher, TagDispatcher

__all__ = [
    "AlarmCondition",
    "TagConditionKind",
    "TagCondition",
    "parse_number",
    "WaitAlarmAction",
    "WaitTagAction",
]


class AlarmCondition(enum.Enum):
    """Condition on the number of alarms matching a filter."""

    NONE = "none"
    ANY = "any"
    INC = "inc"
    DEC = "dec"

    def check(self, new_count: int, old_count: int | None) -> bool:
        if self is AlarmCondition.NONE:
            return new_count == 0
        if self is AlarmCondition.ANY:
            return new_count > 0
        if old_count is None:
            return False
        if self is AlarmCondition.INC:
            return new_count > old_count
        return new_count < old_count


def parse_number(text: str) -> float:
    """Parse a number; ``true`` and ``false`` (any case) give 1.0 and 0.0.

    Raises ValueError if the text is not a number.
    """
    lower = text.lower()
    if lower == "true":
        return 1.0
    if lower == "false":
        return 0.0
    if text != text.strip() or "_" in text:
        raise ValueError(f"Invalid number: {text!r}")
    return float(text)


class TagConditionKind(enum.Enum):
    """Comparison a :class:`TagCondition` performs."""

    LESS = "<"
    LESS_EQUAL = "<="
    GREATER = ">"
    GREATER_EQUAL = ">="
    EQUAL_NUMBER = "=="
    NOT_EQUAL_NUMBER = "!="
    EQUAL_STRING = "eq"
    NOT_EQUAL_STRING = "ne"
    CHANGED = "changed"


_NUMERIC_CHECKS = {
    TagConditionKind.LESS: lambda v, c: v < c,
    TagConditionKind.LESS_EQUAL: lambda v, c: v <= c,
    TagConditionKind.GREATER: lambda v, c: v > c,
    TagConditionKind.GREATER_EQUAL: lambda v, c: v >= c,
    TagConditionKind.EQUAL_NUMBER: lambda v, c: v == c,
    TagConditionKind.NOT_EQUAL_NUMBER: lambda v, c: v != c,
}


@dataclass(frozen=True)
class TagCondition:
    """Condition on a tag value.

    ``operand`` is a number for numeric kinds, a string for string kinds
    and unused for ``CHANGED``.
    """

    kind: TagConditionKind
    operand: float | str | None = None

    def check(self, new_tag: str, old_tag: str | None) -> bool:
        numeric = _NUMERIC_CHECKS.get(self.kind)
        if numeric is not None:
            try:
                value = parse_number(new_tag)
            except ValueError:
                return False
            return numeric(value, self.operand)
        if self.kind is TagConditionKind.EQUAL_STRING:
            return new_tag == self.operand
        if self.kind is TagConditionKind.NOT_EQUAL_STRING:
            return new_tag != self.operand
        return old_tag is not None and new_tag != old_tag


def _discard(awaitable: Awaitable) -> None:
    if inspect.iscoroutine(awaitable):
        awaitable.close()
    elif isinstance(awaitable, asyncio.Future):
        awaitable.cancel()


@dataclass
class WaitAlarmAction(Action):
    """Wait until the count of a named alarm filter meets a condition."""

    filter_name: str
    condition: AlarmCondition
    dispatcher: AlarmDispatcher

    async def run(self) -> None:
        prev: int | None = None
        while True:
            count, changed = self.dispatcher.wait_alarm_filter(self.filter_name)
            if self.condition.check(count, prev):
                _discard(changed)
                return
            prev = count
            count = await changed
            if self.condition.check(count, prev):
                return
            prev = count


@dataclass
class WaitTagAction(Action):
    """Wait until a tag's value meets a condition."""

    tag: str
    condition: TagCondition
    dispatcher: TagDispatcher

    async def run(self) -> None:
        prev: str | None = None
        while True:
            value, changed = self.dispatcher.wait_value(self.tag)
            if value is not None and self.condition.check(value, prev):
                _discard(changed)
                return
            prev = value
            new_value = await changed
            if self.condition.check(new_value, prev):
                return
            prev = new_value