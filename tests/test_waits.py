import asyncio

import pytest

from hmiaudio.dispatch import (
    AlarmDispatcher,
    AlarmFilterNotFoundError,
    TagDispatcher,
)
from hmiaudio.waits import (
    AlarmCondition,
    TagCondition,
    TagConditionKind,
    WaitAlarmAction,
    WaitTagAction,
    parse_number,
)


class FakeTags(TagDispatcher):
    def __init__(self, current, updates):
        self.current = current
        self.updates = asyncio.Queue()
        for value in updates:
            self.updates.put_nowait(value)

    async def _next(self):
        self.current = await self.updates.get()
        return self.current

    def wait_value(self, tag):
        return self.current, self._next()

    def get_value(self, tag):
        return self.current


class FakeAlarms(AlarmDispatcher):
    def __init__(self, current, updates, known=("f",)):
        self.current = current
        self.known = known
        self.updates = asyncio.Queue()
        for value in updates:
            self.updates.put_nowait(value)

    async def _next(self):
        self.current = await self.updates.get()
        return self.current

    def wait_alarm_filter(self, filter_name):
        if filter_name not in self.known:
            raise AlarmFilterNotFoundError()
        return self.current, self._next()

    def get_filter_count(self, filter_name):
        return self.current


def test_parse_number_booleans():
    assert parse_number("true") == 1.0
    assert parse_number("FALSE") == 0.0


def test_parse_number_float():
    assert parse_number("2.5") == 2.5


@pytest.mark.parametrize("text", ["abc", " 1", "1_0", ""])
def test_parse_number_rejects(text):
    with pytest.raises(ValueError):
        parse_number(text)


def test_alarm_condition_none_and_any():
    assert AlarmCondition.NONE.check(0, None)
    assert not AlarmCondition.NONE.check(1, None)
    assert AlarmCondition.ANY.check(2, None)
    assert not AlarmCondition.ANY.check(0, 3)


def test_alarm_condition_inc_dec_need_previous():
    assert not AlarmCondition.INC.check(5, None)
    assert not AlarmCondition.DEC.check(0, None)
    assert AlarmCondition.INC.check(3, 2)
    assert not AlarmCondition.INC.check(2, 2)
    assert AlarmCondition.DEC.check(1, 2)


def test_tag_condition_numeric():
    greater = TagCondition(TagConditionKind.GREATER, 5.0)
    assert greater.check("7", None)
    assert not greater.check("5", None)
    assert not greater.check("many", None)
    assert TagCondition(TagConditionKind.EQUAL_NUMBER, 1.0).check("True", None)
    assert TagCondition(TagConditionKind.LESS_EQUAL, 5.0).check("5", None)


def test_tag_condition_strings():
    assert TagCondition(TagConditionKind.EQUAL_STRING, "on").check("on", None)
    assert not TagCondition(TagConditionKind.EQUAL_STRING, "on").check("On", None)
    assert TagCondition(TagConditionKind.NOT_EQUAL_STRING, "on").check("off", None)


def test_tag_condition_changed():
    changed = TagCondition(TagConditionKind.CHANGED)
    assert not changed.check("a", None)
    assert not changed.check("a", "a")
    assert changed.check("b", "a")


@pytest.mark.asyncio
async def test_wait_tag_until_condition():
    tags = FakeTags("3", ["4", "7", "9"])
    action = WaitTagAction("t", TagCondition(TagConditionKind.GREATER, 5.0), tags)
    await asyncio.wait_for(action.run(), 1)
    assert tags.current == "7"
    assert tags.updates.qsize() == 1


@pytest.mark.asyncio
async def test_wait_tag_already_satisfied():
    tags = FakeTags("8", ["1"])
    action = WaitTagAction("t", TagCondition(TagConditionKind.GREATER, 5.0), tags)
    await asyncio.wait_for(action.run(), 1)
    assert tags.updates.qsize() == 1


@pytest.mark.asyncio
async def test_wait_tag_changed_ignores_unknown_start():
    tags = FakeTags(None, ["a", "a", "b"])
    action = WaitTagAction("t", TagCondition(TagConditionKind.CHANGED), tags)
    await asyncio.wait_for(action.run(), 1)
    assert tags.current == "b"
    assert tags.updates.empty()


@pytest.mark.asyncio
async def test_wait_alarm_any():
    alarms = FakeAlarms(0, [0, 2])
    await asyncio.wait_for(WaitAlarmAction("f", AlarmCondition.ANY, alarms).run(), 1)
    assert alarms.current == 2
    assert alarms.updates.empty()


@pytest.mark.asyncio
async def test_wait_alarm_increase():
    alarms = FakeAlarms(1, [1, 0, 3, 4])
    await asyncio.wait_for(WaitAlarmAction("f", AlarmCondition.INC, alarms).run(), 1)
    assert alarms.current == 3
    assert alarms.updates.qsize() == 1


@pytest.mark.asyncio
async def test_wait_alarm_unknown_filter():
    alarms = FakeAlarms(0, [])
    action = WaitAlarmAction("other", AlarmCondition.ANY, alarms)
    with pytest.raises(AlarmFilterNotFoundError, match="Alarm filter not found"):
        await action.run()