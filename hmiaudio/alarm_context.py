"""Alarm filters and the counts of alarms that match them.

:class:`AlarmContext` keeps, for every named filter, the set of alarms
currently matching it and the set of alarms the user chose to ignore. It
wakes up actions waiting for a filter's count to change and can mirror
the counts into tags through a :class:`~hmiaudio.dispatch.TagSetter`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Hashable

from hmiaudio.alarm_filter import BoolOp
from hmiaudio.dispatch import (
    AlarmDispatcher,
    AlarmFilterNotFoundError,
    AlarmFunctions,
    DispatcherNotAvailableError,
    TagSetter,
)

__all__ = ["AlarmContext"]

_log = logging.getLogger(__name__)

# Notifications with this state carry no alarm change and are skipped.
_NO_CHANGE_STATE = 128


def _alarm_key(alarm: Any) -> Hashable:
    return (alarm.id, alarm.instance_id)


def _resolve(future: asyncio.Future, value: int) -> None:
    if not future.done():
        future.set_result(value)


@dataclass
class _FilterState:
    predicate: BoolOp
    tag_setter: Callable[[], TagSetter | None] | None
    tag_matching: str | None
    tag_ignored: str | None
    matching: set = field(default_factory=set)
    ignore: set = field(default_factory=set)
    ignore_permanent: bool = False
    waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = field(
        default_factory=list
    )

    def matching_count(self) -> int:
        return len(self.matching - self.ignore)

    def handle_notification(self, alarm: Any) -> bool:
        """Update the sets for ``alarm``; return whether the counts must be published."""
        if alarm.state == _NO_CHANGE_STATE:
            return False
        key = _alarm_key(alarm)
        if self.predicate.evaluate(alarm):
            if key in self.matching:
                return False
            self.matching.add(key)
            return True
        if not self.ignore_permanent:
            self.ignore.discard(key)
        if key in self.matching:
            self.matching.remove(key)
            return True
        return False

    def publish(self) -> None:
        count = self.matching_count()
        waiters, self.waiters = self.waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future, count)
            except RuntimeError as err:
                _log.error("Failed to notify alarm observers: %s", err)
        setter = self.tag_setter() if self.tag_setter is not None else None
        if setter is None:
            return
        for tag_name, value in (
            (self.tag_matching, count),
            (self.tag_ignored, len(self.ignore)),
        ):
            if tag_name is None:
                continue
            try:
                setter.set_tag(tag_name, str(value))
            except Exception as err:
                _log.debug("Failed to set tag %s: %s", tag_name, err)


class AlarmContext(AlarmDispatcher, AlarmFunctions):
    """Named alarm filters and the alarms matching each of them."""

    def __init__(self) -> None:
        self._filters: dict[str, _FilterState] = {}
        self._lock = threading.RLock()

    def add_filter(
        self,
        name: str,
        predicate: BoolOp,
        tag_setter: TagSetter | None = None,
        tag_matching: str | None = None,
        tag_ignored: str | None = None,
    ) -> None:
        """Add a filter, replacing any filter of that name.

        If ``tag_matching`` or ``tag_ignored`` is given, the number of
        matching (not ignored) alarms and of ignored alarms is written to
        those tags through ``tag_setter``, which is held weakly.
        """
        setter_ref = None
        if tag_setter is not None and (
            tag_matching is not None or tag_ignored is not None
        ):
            setter_ref = weakref.ref(tag_setter)
        with self._lock:
            self._filters[name] = _FilterState(
                predicate, setter_ref, tag_matching, tag_ignored
            )

    def handle_notification(self, alarm: Any) -> None:
        """Apply an alarm notification to every filter."""
        with self._lock:
            for state in self._filters.values():
                if state.handle_notification(alarm):
                    state.publish()

    def _get(self, filter_name: str) -> _FilterState:
        state = self._filters.get(filter_name)
        if state is None:
            raise AlarmFilterNotFoundError()
        return state

    async def _next_count(self, filter_name: str) -> int:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        entry = (loop, future)
        with self._lock:
            state = self._filters.get(filter_name)
            if state is None:
                raise DispatcherNotAvailableError("Alarm")
            state.waiters.append(entry)
        try:
            return await future
        finally:
            with self._lock:
                if entry in state.waiters:
                    state.waiters.remove(entry)

    def wait_alarm_filter(self, filter_name: str):
        with self._lock:
            count = self._get(filter_name).matching_count()
        return count, self._next_count(filter_name)

    def get_filter_count(self, filter_name: str) -> int:
        with self._lock:
            return self._get(filter_name).matching_count()

    def ignore_matched_alarms(self, filter_name: str, permanent: bool) -> None:
        with self._lock:
            state = self._filters.get(filter_name)
            if state is None:
                return
            state.ignore = set(state.matching)
            state.ignore_permanent = permanent
            state.publish()

    def restore_ignored_alarms(self, filter_name: str) -> None:
        with self._lock:
            state = self._filters.get(filter_name)
            if state is None:
                return
            state.ignore = set()
            state.publish()