"""Interfaces shared by actions and the contexts that serve them.

Actions talk to the rest of the player through these abstract classes:
tag dispatchers report tag values, alarm dispatchers report how many
alarms match a named filter, tag setters write tags back to the HMI and
alarm functions let actions ignore or restore matched alarms.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable

__all__ = [
    "DispatchError",
    "AlarmFilterNotFoundError",
    "TagNotFoundError",
    "DispatcherNotAvailableError",
    "TagDispatcher",
    "AlarmDispatcher",
    "TagSetter",
    "AlarmFunctions",
    "Action",
]


class DispatchError(Exception):
    """Base class for errors raised by tag and alarm dispatchers."""


class AlarmFilterNotFoundError(DispatchError, LookupError):
    """No alarm filter with the requested name exists."""

    def __init__(self, message: str = "Alarm filter not found"):
        super().__init__(message)


class TagNotFoundError(DispatchError, LookupError):
    """No tag with the requested name exists."""

    def __init__(self, message: str = "Can't subscribe to tag, not found"):
        super().__init__(message)


class DispatcherNotAvailableError(DispatchError, RuntimeError):
    """The dispatcher has shut down or cannot be reached.

    ``subject`` names the kind of dispatcher, e.g. ``"Tag"`` or ``"Alarm"``.
    """

    def __init__(self, subject: str = "Tag"):
        self.subject = subject
        super().__init__(f"{subject} dispatcher not available")


class TagDispatcher(ABC):
    """Source of tag values."""

    @abstractmethod
    def wait_value(self, tag: str) -> tuple[str | None, Awaitable[str]]:
        """Return the current value of ``tag`` and an awaitable for the next one.

        The awaitable may complete even if the value did not change.
        Raises :class:`DispatchError` if the tag cannot be watched.
        """

    @abstractmethod
    def get_value(self, tag: str) -> str | None:
        """Return the current value of ``tag``, or None if it is unknown."""


class AlarmDispatcher(ABC):
    """Source of alarm counts for named filters."""

    @abstractmethod
    def wait_alarm_filter(self, filter_name: str) -> tuple[int, Awaitable[int]]:
        """Return the current match count and an awaitable for the next one.

        The awaitable may complete even if the count did not change.
        Raises :class:`DispatchError` if the filter cannot be watched.
        """

    @abstractmethod
    def get_filter_count(self, filter_name: str) -> int:
        """Return the number of alarms currently matching the filter."""


class TagSetter(ABC):
    """Sink for tag writes."""

    @abstractmethod
    async def async_set_tag(self, tag_name: str, value: str) -> None:
        """Write a tag and wait until the write is confirmed."""

    @abstractmethod
    def set_tag(self, tag_name: str, value: str) -> None:
        """Queue a tag write without waiting; the write is not guaranteed."""


class AlarmFunctions(ABC):
    """Operations on the alarms matched by named filters."""

    @abstractmethod
    def ignore_matched_alarms(self, filter_name: str, permanent: bool) -> None:
        """Ignore the alarms currently matched by the filter.

        If ``permanent`` is false an alarm stops being ignored once it no
        longer matches.
        """

    @abstractmethod
    def restore_ignored_alarms(self, filter_name: str) -> None:
        """Stop ignoring alarms for the filter."""


class Action(ABC):
    """Something a state machine can run."""

    @abstractmethod
    async def run(self) -> None:
        """Perform the action; raises on failure."""