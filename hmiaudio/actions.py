"""Actions that state machines run: playback, tags, volume, control flow."""

from __future__ import annotations

import asyncio
import copy
import enum
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any

from hmiaudio.dispatch import Action, AlarmFunctions, TagDispatcher, TagSetter

__all__ = [
    "AlarmOp",
    "AlarmFunctionAction",
    "DebugAction",
    "GotoAction",
    "SequenceAction",
    "ParallelAction",
    "PlayAction",
    "RepeatAction",
    "SetTagAction",
    "SetVolumeAction",
    "WaitAction",
]

_log = logging.getLogger(__name__)


class AlarmOp(enum.Enum):
    """Operation of an :class:`AlarmFunctionAction`."""

    IGNORE = "ignore"
    RESTORE = "restore"


@dataclass
class AlarmFunctionAction(Action):
    """Ignore or restore the alarms matched by a named filter."""

    filter_name: str
    alarm_functions: AlarmFunctions
    op: AlarmOp

    async def run(self) -> None:
        if self.op is AlarmOp.IGNORE:
            self.alarm_functions.ignore_matched_alarms(self.filter_name, False)
        else:
            self.alarm_functions.restore_ignored_alarms(self.filter_name)


@dataclass
class DebugAction(Action):
    """Write a text to the debug log."""

    text: str

    async def run(self) -> None:
        _log.debug("%s", self.text)


class GotoAction(Action):
    """Switch a state machine to another state.

    Only a weak reference to the state machine is kept; if it is gone the
    action does nothing.
    """

    def __init__(self, state_index: int, state_machine: Any):
        self.state_index = state_index
        self._state_machine = weakref.ref(state_machine)

    async def run(self) -> None:
        state_machine = self._state_machine()
        if state_machine is not None:
            await state_machine.goto(self.state_index)


@dataclass
class SequenceAction(Action):
    """Run actions one after another, stopping at the first failure."""

    actions: list[Action] = field(default_factory=list)

    def add(self, action: Action) -> None:
        self.actions.append(action)

    async def run(self) -> None:
        for action in list(self.actions):
            await action.run()


@dataclass
class ParallelAction(Action):
    """Run actions concurrently; the first failure cancels the rest."""

    actions: list[Action] = field(default_factory=list)

    def add(self, action: Action) -> None:
        self.actions.append(action)

    async def run(self) -> None:
        tasks = [asyncio.ensure_future(action.run()) for action in list(self.actions)]
        if not tasks:
            return
        try:
            done, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in tasks:
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()


@dataclass
class PlayAction(Action):
    """Queue a clip for playback and wait until it has played.

    ``timeout`` is in seconds, or None for no limit.
    """

    clip_queue: Any
    priority: int
    timeout: float | None
    samples: Any

    async def run(self) -> None:
        await self.clip_queue.play(self.samples, self.priority, self.timeout)


@dataclass
class RepeatAction(Action):
    """Run an action ``count`` times, or forever if ``count`` is None.

    Endless repetition is throttled by ``repeat_limit``, an object whose
    ``count()`` returns false once events come too fast.
    """

    action: Action
    count: int | None
    repeat_limit: Any

    def __post_init__(self) -> None:
        if self.count is not None and self.count < 1:
            raise ValueError("Repeat count must be positive")

    async def run(self) -> None:
        if self.count is not None:
            for _ in range(self.count):
                await self.action.run()
            return
        limit = copy.copy(self.repeat_limit)
        while True:
            if not limit.count():
                raise RuntimeError("Repetition too fast in repeat action")
            await self.action.run()


@dataclass
class SetTagAction(Action):
    """Write a value to a tag and wait for the write to be confirmed."""

    tag_name: str
    value: str
    tag_setter: TagSetter

    async def run(self) -> None:
        await self.tag_setter.async_set_tag(self.tag_name, self.value)


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"Invalid number: {text!r}")
    return float(text)


@dataclass
class SetVolumeAction(Action):
    """Set a volume control to a constant level or to a tag's value."""

    control: Any
    value: float | None = None
    tag_name: str | None = None
    dispatcher: TagDispatcher | None = None

    @classmethod
    def constant(cls, control: Any, value: float) -> "SetVolumeAction":
        return cls(control, value=value)

    @classmethod
    def from_tag(
        cls, control: Any, tag_name: str, dispatcher: TagDispatcher
    ) -> "SetVolumeAction":
        return cls(control, tag_name=tag_name, dispatcher=dispatcher)

    async def run(self) -> None:
        if self.tag_name is None or self.dispatcher is None:
            self.control.set_volume(self.value)
            return
        text = self.dispatcher.get_value(self.tag_name)
        if text is None:
            return
        try:
            volume = _parse_float(text)
        except ValueError:
            return
        self.control.set_volume(volume)


@dataclass
class WaitAction(Action):
    """Wait for ``timeout`` seconds."""

    timeout: float

    async def run(self) -> None:
        await asyncio.sleep(self.timeout)