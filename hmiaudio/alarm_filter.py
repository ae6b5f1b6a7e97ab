"""Alarm states and a small filter language for selecting alarms.

A filter is an expression such as ``Priority < 8 AND (State = 'in,ack' OR
Name != 'Foo')``. :func:`parse_filter` turns it into a tree of
:class:`BoolOp` nodes that can be evaluated against alarm records.
Alarm records are any objects with the attributes ``name``,
``alarm_class_name``, ``id``, ``instance_id``, ``priority`` and ``state``.
"""

from __future__ import annotations

import enum
import re
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable

__all__ = [
    "AlarmState",
    "AlarmStateError",
    "StringCriterion",
    "IntCriterion",
    "BoolOp",
    "Not",
    "And",
    "Or",
    "StringEqual",
    "StateEqual",
    "IntEqual",
    "IntLess",
    "IntLessEqual",
    "FilterErrorKind",
    "FilterError",
    "parse_filter",
]


class AlarmStateError(ValueError):
    """Raised when a text does not describe a valid alarm state."""


class AlarmState(enum.IntEnum):
    """State of an alarm as reported by the HMI runtime."""

    NORMAL = 0
    RAISED = 1
    RAISED_CLEARED = 2
    RAISED_ACKNOWLEDGED = 5
    RAISED_ACKNOWLEDGED_CLEARED = 6
    RAISED_CLEARED_ACKNOWLEDGED = 7
    REMOVED = 8

    @classmethod
    def parse(cls, text: str) -> "AlarmState":
        """Parse a state number, a state name or a list of transitions.

        Names are case insensitive. Transitions use ``incoming``/``in``,
        ``outgoing``/``out`` and ``acknowledged``/``ack`` separated by
        spaces, commas or slashes.
        """
        if re.fullmatch(r"\+?[0-9]+", text):
            number = int(text)
            if number <= 0xFFFFFFFF:
                try:
                    return cls(number)
                except ValueError:
                    raise AlarmStateError(
                        f"Integer {number} is not a valid alarm state"
                    ) from None
        words = tuple(re.split(r"[ ,/]", text.lower()))
        try:
            return _STATE_WORDS[words]
        except KeyError:
            raise AlarmStateError(
                f'String "{text}" is not a valid alarm state'
            ) from None

    def label(self) -> str:
        """Return the canonical name of the state."""
        return _STATE_LABELS[self]


_STATE_LABELS = {
    AlarmState.NORMAL: "Normal",
    AlarmState.RAISED: "Raised",
    AlarmState.RAISED_CLEARED: "RaisedCleared",
    AlarmState.RAISED_ACKNOWLEDGED: "RaisedAcknowledged",
    AlarmState.RAISED_ACKNOWLEDGED_CLEARED: "RaisedAcknowledgedCleared",
    AlarmState.RAISED_CLEARED_ACKNOWLEDGED: "RaisedClearedAcknowledged",
    AlarmState.REMOVED: "Removed",
}


def _build_state_words() -> dict[tuple[str, ...], AlarmState]:
    long_words = {"in": "incoming", "out": "outgoing", "ack": "acknowledged"}
    transitions = {
        AlarmState.RAISED: ("in",),
        AlarmState.RAISED_CLEARED: ("in", "out"),
        AlarmState.RAISED_ACKNOWLEDGED: ("in", "ack"),
        AlarmState.RAISED_ACKNOWLEDGED_CLEARED: ("in", "ack", "out"),
        AlarmState.RAISED_CLEARED_ACKNOWLEDGED: ("in", "out", "ack"),
    }
    table = {(label.lower(),): state for state, label in _STATE_LABELS.items()}
    for state, short in transitions.items():
        table[short] = state
        table[tuple(long_words[w] for w in short)] = state
    return table


_STATE_WORDS = _build_state_words()


class StringCriterion(enum.Enum):
    """Text fields of an alarm that a filter can compare."""

    ALARM_CLASS_NAME = "AlarmClassName"
    ALARM_NAME = "Name"

    def evaluate(self, alarm: Any) -> str:
        """Return the field's value for ``alarm``."""
        if self is StringCriterion.ALARM_CLASS_NAME:
            return alarm.alarm_class_name
        return alarm.name

    def label(self) -> str:
        """Return the field name used in filter expressions."""
        return self.value


class IntCriterion(enum.Enum):
    """Integer fields of an alarm that a filter can compare."""

    ID = "ID"
    INSTANCE_ID = "InstanceID"
    PRIORITY = "Priority"
    ALARM_STATE = "State"

    def evaluate(self, alarm: Any) -> int:
        """Return the field's value for ``alarm``."""
        return getattr(alarm, _INT_ATTRIBUTES[self])

    def label(self) -> str:
        """Return the field name used in filter expressions."""
        return self.value


_INT_ATTRIBUTES = {
    IntCriterion.ID: "id",
    IntCriterion.INSTANCE_ID: "instance_id",
    IntCriterion.PRIORITY: "priority",
    IntCriterion.ALARM_STATE: "state",
}


class BoolOp(ABC):
    """A node of a parsed filter expression."""

    @abstractmethod
    def evaluate(self, alarm: Any) -> bool:
        """Return whether ``alarm`` satisfies this expression."""


@dataclass(frozen=True)
class Not(BoolOp):
    operand: BoolOp

    def evaluate(self, alarm: Any) -> bool:
        return not self.operand.evaluate(alarm)

    def __str__(self) -> str:
        return f"NOT ({self.operand})"


@dataclass(frozen=True)
class And(BoolOp):
    left: BoolOp
    right: BoolOp

    def evaluate(self, alarm: Any) -> bool:
        return self.left.evaluate(alarm) and self.right.evaluate(alarm)

    def __str__(self) -> str:
        return f"({self.left}) AND ({self.right})"


@dataclass(frozen=True)
class Or(BoolOp):
    left: BoolOp
    right: BoolOp

    def evaluate(self, alarm: Any) -> bool:
        return self.left.evaluate(alarm) or self.right.evaluate(alarm)

    def __str__(self) -> str:
        return f"({self.left}) OR ({self.right})"


@dataclass(frozen=True)
class StringEqual(BoolOp):
    criterion: StringCriterion
    value: str

    def evaluate(self, alarm: Any) -> bool:
        return self.criterion.evaluate(alarm) == self.value

    def __str__(self) -> str:
        return f"{self.criterion.label()} = '{self.value}'"


@dataclass(frozen=True)
class StateEqual(BoolOp):
    criterion: IntCriterion
    state: AlarmState

    def evaluate(self, alarm: Any) -> bool:
        return self.criterion.evaluate(alarm) == int(self.state)

    def __str__(self) -> str:
        return f"{self.criterion.label()} = '{self.state.label()}'"


@dataclass(frozen=True)
class IntEqual(BoolOp):
    criterion: IntCriterion
    value: int

    def evaluate(self, alarm: Any) -> bool:
        return self.criterion.evaluate(alarm) == self.value

    def __str__(self) -> str:
        return f"{self.criterion.label()} = {self.value}"


@dataclass(frozen=True)
class IntLess(BoolOp):
    criterion: IntCriterion
    value: int

    def evaluate(self, alarm: Any) -> bool:
        return self.criterion.evaluate(alarm) < self.value

    def __str__(self) -> str:
        return f"{self.criterion.label()} < {self.value}"


@dataclass(frozen=True)
class IntLessEqual(BoolOp):
    criterion: IntCriterion
    value: int

    def evaluate(self, alarm: Any) -> bool:
        return self.criterion.evaluate(alarm) <= self.value

    def __str__(self) -> str:
        return f"{self.criterion.label()} <= {self.value}"


class FilterErrorKind(enum.Enum):
    """Why a filter expression could not be parsed."""

    INVALID_CRITERION_NAME = "invalid_criterion_name"
    ILLEGAL_CHECK_OPERATION = "illegal_check_operation"
    INVALID_STATE = "invalid_state"
    TAG = "Tag"
    CHAR = "Char"
    ALPHA = "Alphabetic"
    DIGIT = "Digit"
    EOF = "End of file"
    ERROR = "error"


class FilterError(ValueError):
    """A filter expression could not be parsed.

    ``remaining`` is the part of the input where the problem was found.
    """

    def __init__(self, remaining: str, kind: FilterErrorKind, detail: str = ""):
        self.remaining = remaining
        self.kind = kind
        self.detail = detail
        super().__init__(self._message())

    def _message(self) -> str:
        if self.kind is FilterErrorKind.INVALID_CRITERION_NAME:
            return f"Name of filter criterion not recognized: {self.detail}"
        if self.kind is FilterErrorKind.ILLEGAL_CHECK_OPERATION:
            return f"Illegal comparison operator: {self.detail}"
        if self.kind is FilterErrorKind.INVALID_STATE:
            return f"Invalid state descriptor: {self.detail}"
        if self.kind is FilterErrorKind.ERROR:
            return self.detail
        return self.kind.value


class _Cut(Exception):
    """An error that stops backtracking and ends the parse."""

    def __init__(self, error: FilterError):
        super().__init__(str(error))
        self.error = error


_WHITESPACE = " \t\r\n"
_DIGITS = string.digits
_LETTERS = string.ascii_letters
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1

_STRING_FIELDS = {c.value: c for c in StringCriterion}
_INT_FIELDS = {
    "ID": IntCriterion.ID,
    "InstanceID": IntCriterion.INSTANCE_ID,
    "Priority": IntCriterion.PRIORITY,
}

_Result = tuple[Any, int]


class _Parser:
    """Recursive descent parser with ordered-choice backtracking."""

    def __init__(self, text: str):
        self.text = text

    def error(self, pos: int, kind: FilterErrorKind, detail: str = "") -> FilterError:
        return FilterError(self.text[pos:], kind, detail)

    # Primitive parsers

    def scan(self, pos: int, chars: str) -> int:
        text = self.text
        while pos < len(text) and text[pos] in chars:
            pos += 1
        return pos

    def spaces(self, pos: int) -> int:
        return self.scan(pos, _WHITESPACE)

    def tag(self, pos: int, literal: str) -> _Result:
        if self.text.startswith(literal, pos):
            return literal, pos + len(literal)
        raise self.error(pos, FilterErrorKind.TAG)

    def one_of_tags(self, pos: int, literals: tuple[str, ...]) -> _Result:
        return self.alt(pos, *(lambda p, lit=lit: self.tag(p, lit) for lit in literals))

    def alpha1(self, pos: int) -> _Result:
        end = self.scan(pos, _LETTERS)
        if end == pos:
            raise self.error(pos, FilterErrorKind.ALPHA)
        return self.text[pos:end], end

    def digit1(self, pos: int) -> _Result:
        end = self.scan(pos, _DIGITS)
        if end == pos:
            raise self.error(pos, FilterErrorKind.DIGIT)
        return self.text[pos:end], end

    def i32(self, pos: int) -> _Result:
        start = pos
        negative = False
        if pos < len(self.text) and self.text[pos] in "+-":
            negative = self.text[pos] == "-"
            pos += 1
        end = self.scan(pos, _DIGITS)
        if end == pos:
            raise self.error(start, FilterErrorKind.DIGIT)
        value = int(self.text[pos:end])
        if negative:
            value = -value
        if not _I32_MIN <= value <= _I32_MAX:
            raise self.error(start, FilterErrorKind.DIGIT)
        return value, end

    def string_literal(self, pos: int) -> _Result:
        text = self.text
        if not text.startswith("'", pos):
            raise self.error(pos, FilterErrorKind.CHAR)
        pos += 1
        chars: list[str] = []
        while True:
            if pos < len(text) and text[pos] != "'":
                chars.append(text[pos])
                pos += 1
            elif text.startswith("''", pos):
                chars.append("'")
                pos += 2
            else:
                break
        if not text.startswith("'", pos):
            raise self.error(pos, FilterErrorKind.CHAR)
        return "".join(chars), pos + 1

    @staticmethod
    def alt(pos: int, *parsers: Callable[[int], _Result]) -> _Result:
        last: FilterError | None = None
        for parser in parsers:
            try:
                return parser(pos)
            except FilterError as err:
                last = err
        assert last is not None
        raise last

    # Comparisons

    def comparison(self, pos: int, operators: tuple[str, ...], value) -> tuple:
        field, pos = self.alpha1(pos)
        pos = self.spaces(pos)
        op, pos = self.one_of_tags(pos, operators)
        pos = self.spaces(pos)
        operand, pos = value(pos)
        return field, op, operand, pos

    def string_criterion(self, pos: int) -> _Result:
        field, op, value, pos = self.comparison(pos, ("=", "!="), self.string_literal)
        criterion = _STRING_FIELDS.get(field)
        if criterion is None:
            raise self.error(pos, FilterErrorKind.INVALID_CRITERION_NAME, field)
        node = StringEqual(criterion, value)
        return (Not(node) if op == "!=" else node), pos

    def int_criterion(self, pos: int) -> _Result:
        operators = ("!=", "=", "<=", ">=", "<", ">")
        field, op, value, pos = self.comparison(pos, operators, self.i32)
        criterion = _INT_FIELDS.get(field)
        if criterion is None:
            raise self.error(pos, FilterErrorKind.INVALID_CRITERION_NAME, field)
        node: BoolOp
        if op == "=":
            node = IntEqual(criterion, value)
        elif op == "!=":
            node = Not(IntEqual(criterion, value))
        elif op == "<":
            node = IntLess(criterion, value)
        elif op == "<=":
            node = IntLessEqual(criterion, value)
        elif op == ">=":
            node = Not(IntLess(criterion, value))
        else:
            node = Not(IntLessEqual(criterion, value))
        return node, pos

    def state_criterion(self, pos: int) -> _Result:
        _, pos = self.tag(pos, "State")
        pos = self.spaces(pos)
        op, pos = self.one_of_tags(pos, ("!=", "="))
        pos = self.spaces(pos)
        text, pos = self.alt(pos, self.string_literal, self.digit1)
        try:
            state = AlarmState.parse(text)
        except AlarmStateError as err:
            raise _Cut(self.error(pos, FilterErrorKind.ERROR, str(err))) from None
        node = StateEqual(IntCriterion.ALARM_STATE, state)
        return (Not(node) if op == "!=" else node), pos

    # Expression grammar

    def criterion(self, pos: int) -> _Result:
        return self.alt(pos, self.state_criterion, self.int_criterion, self.string_criterion)

    def parenthesis(self, pos: int) -> _Result:
        _, pos = self.tag(pos, "(")
        node, pos = self.or_expr(pos)
        _, pos = self.tag(pos, ")")
        return node, pos

    def arg(self, pos: int) -> _Result:
        return self.alt(pos, self.parenthesis, self.criterion)

    def negated(self, pos: int) -> _Result:
        _, pos = self.tag(pos, "NOT")
        node, pos = self.arg(self.spaces(pos))
        return Not(node), pos

    def not_expr(self, pos: int) -> _Result:
        return self.alt(pos, self.negated, self.arg)

    def chain(self, pos: int, keyword: str, operand, combine) -> _Result:
        left, pos = operand(pos)
        rest: BoolOp | None = None
        while True:
            try:
                _, after = self.tag(self.spaces(pos), keyword)
                node, after = operand(self.spaces(after))
            except FilterError:
                break
            rest = node if rest is None else combine(rest, node)
            pos = after
        return (left if rest is None else combine(left, rest)), pos

    def and_expr(self, pos: int) -> _Result:
        return self.chain(pos, "AND", self.not_expr, And)

    def or_expr(self, pos: int) -> _Result:
        return self.chain(pos, "OR", self.and_expr, Or)


def parse_filter(text: str) -> BoolOp:
    """Parse a filter expression.

    Raises :class:`FilterError` if the text is not a complete, valid filter.
    """
    parser = _Parser(text)
    try:
        node, pos = parser.or_expr(0)
    except _Cut as cut:
        raise cut.error from None
    if pos != len(text):
        raise parser.error(pos, FilterErrorKind.EOF)
    return node