import re

import pytest

from hmiaudio.dispatch import (
    Action,
    AlarmDispatcher,
    AlarmFilterNotFoundError,
    AlarmFunctions,
    DispatchError,
    DispatcherNotAvailableError,
    TagDispatcher,
    TagNotFoundError,
    TagSetter,
)


def test_alarm_filter_not_found_message():
    assert str(AlarmFilterNotFoundError()) == "Alarm filter not found"


def test_tag_not_found_message():
    assert str(TagNotFoundError()) == "Can't subscribe to tag, not found"


def test_dispatcher_not_available_messages():
    assert str(DispatcherNotAvailableError("Tag")) == "Tag dispatcher not available"
    assert str(DispatcherNotAvailableError("Alarm")) == "Alarm dispatcher not available"


@pytest.mark.parametrize(
    "make_error, expected",
    [
        (AlarmFilterNotFoundError, "Alarm filter not found"),
        (TagNotFoundError, "Can't subscribe to tag, not found"),
        (lambda: DispatcherNotAvailableError("Tag"), "Tag dispatcher not available"),
    ],
)
def test_errors_share_dispatch_error_base(make_error, expected):
    error = make_error()
    with pytest.raises(DispatchError, match=re.escape(expected)) as excinfo:
        raise error
    assert excinfo.value is error
    assert str(excinfo.value) == expected


def test_tag_not_found_is_lookup_error():
    error = TagNotFoundError()
    with pytest.raises(LookupError) as excinfo:
        raise error
    assert excinfo.value is error
    assert str(excinfo.value) == "Can't subscribe to tag, not found"


@pytest.mark.parametrize(
    "cls", [Action, TagDispatcher, AlarmDispatcher, TagSetter, AlarmFunctions]
)
def test_interfaces_are_abstract(cls):
    with pytest.raises(TypeError):
        cls()