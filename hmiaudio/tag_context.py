"""Tag values shared between the HMI connection and the player's actions.

:class:`TagContext` keeps the last known value of every subscribed tag,
wakes up actions waiting for a tag to change and queues tag writes as
:class:`TagSetRequest` objects for the connection to send.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterable

from hmiaudio.dispatch import (
    DispatcherNotAvailableError,
    TagDispatcher,
    TagNotFoundError,
    TagSetter,
)

__all__ = ["TagSetRequest", "TagContext", "setup_tags"]

_log = logging.getLogger(__name__)

_CONFIRM_TIMEOUT = 0.5


@dataclass
class TagSetRequest:
    """A tag write waiting to be sent.

    ``done`` is a future to complete once the write is confirmed, or None
    when nobody waits for the confirmation.
    """

    tag_name: str
    value: str
    done: asyncio.Future | None = None


@dataclass
class _TagObservable:
    state: str | None
    waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future]] = field(
        default_factory=list
    )


def _resolve(future: asyncio.Future, value: str) -> None:
    if not future.done():
        future.set_result(value)


class TagContext(TagSetter, TagDispatcher):
    """Known tags, their values and the queue of pending tag writes.

    ``request_queue`` is any object with a ``put_nowait`` method, such as
    an :class:`asyncio.Queue`. ``confirm_timeout`` is how many seconds
    :meth:`async_set_tag` waits for a write to be confirmed.
    """

    def __init__(self, request_queue: Any, confirm_timeout: float = _CONFIRM_TIMEOUT):
        self._tags: dict[str, _TagObservable] = {}
        self._lock = threading.Lock()
        self._requests = request_queue
        self.confirm_timeout = confirm_timeout

    def tag_changed(self, name: str, new_value: str) -> None:
        """Record a new value for a known tag and wake up its waiters.

        Values for tags that were never added are ignored.
        """
        with self._lock:
            data = self._tags.get(name)
            if data is None:
                return
            if data.state is not None and data.state != new_value:
                _log.debug("%s: %s -> %s", name, data.state, new_value)
            data.state = new_value
            waiters, data.waiters = data.waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future, new_value)
            except RuntimeError as err:
                _log.error("Failed to notify tag observers: %s", err)

    def tag_names(self) -> list[str]:
        """Return the names of all known tags."""
        with self._lock:
            return list(self._tags)

    def add_tag(self, name: str, state: str | None = None) -> None:
        """Add a tag, replacing any existing tag of that name."""
        with self._lock:
            self._tags[name] = _TagObservable(state)

    def _queue(self, tag_name: str, value: str, done: asyncio.Future | None) -> None:
        request = TagSetRequest(tag_name, value, done)
        try:
            self._requests.put_nowait(request)
        except Exception as err:
            raise RuntimeError("Failed to queue request") from err

    async def async_set_tag(self, tag_name: str, value: str) -> None:
        """Write a tag and wait until the write is confirmed.

        Raises :class:`asyncio.TimeoutError` if no confirmation arrives in
        time, and whatever error the confirmation carries.
        """
        self.tag_changed(tag_name, value)
        done = asyncio.get_running_loop().create_future()
        self._queue(tag_name, value, done)
        await asyncio.wait_for(done, self.confirm_timeout)

    def set_tag(self, tag_name: str, value: str) -> None:
        """Queue a tag write without waiting for it to be confirmed."""
        self.tag_changed(tag_name, value)
        self._queue(tag_name, value, None)

    async def _next_value(self, tag: str) -> str:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        entry = (loop, future)
        with self._lock:
            data = self._tags.get(tag)
            if data is None:
                raise DispatcherNotAvailableError("Tag")
            data.waiters.append(entry)
        try:
            return await future
        finally:
            with self._lock:
                if entry in data.waiters:
                    data.waiters.remove(entry)

    def wait_value(self, tag: str):
        with self._lock:
            data = self._tags.get(tag)
            if data is None:
                raise TagNotFoundError()
            value = data.state
        return value, self._next_value(tag)

    def get_value(self, tag: str) -> str | None:
        with self._lock:
            data = self._tags.get(tag)
            return None if data is None else data.state


def setup_tags(tag_names: Iterable[str], request_queue: Any) -> TagContext:
    """Create a :class:`TagContext` holding the given tags with no values."""
    context = TagContext(request_queue)
    for name in tag_names:
        context.add_tag(name, None)
    return context