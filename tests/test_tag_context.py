import asyncio
import queue

import pytest

from hmiaudio.dispatch import TagNotFoundError
from hmiaudio.tag_context import TagContext, TagSetRequest, setup_tags


def make_context(names=("A", "B")):
    return setup_tags(names, queue.SimpleQueue())


def test_setup_tags_adds_names_without_values():
    ctx = make_context(["Volume", "Mute"])
    assert sorted(ctx.tag_names()) == ["Mute", "Volume"]
    assert ctx.get_value("Volume") is None
    assert ctx.get_value("Mute") is None


def test_add_tag_with_initial_state():
    ctx = make_context([])
    ctx.add_tag("AUDIO_SERVER_VERSION", "1.0")
    assert ctx.get_value("AUDIO_SERVER_VERSION") == "1.0"
    assert ctx.tag_names() == ["AUDIO_SERVER_VERSION"]


def test_tag_changed_updates_known_tag():
    ctx = make_context()
    ctx.tag_changed("A", "5")
    assert ctx.get_value("A") == "5"
    ctx.tag_changed("A", "6")
    assert ctx.get_value("A") == "6"
    assert ctx.get_value("B") is None


def test_tag_changed_ignores_unknown_tag():
    ctx = make_context()
    ctx.tag_changed("Unknown", "1")
    assert ctx.get_value("Unknown") is None
    assert sorted(ctx.tag_names()) == ["A", "B"]


def test_wait_value_unknown_tag_raises():
    ctx = make_context()
    with pytest.raises(TagNotFoundError):
        ctx.wait_value("Unknown")


def test_set_tag_queues_request_and_updates_value():
    requests = queue.SimpleQueue()
    ctx = setup_tags(["A"], requests)
    ctx.set_tag("A", "on")
    assert ctx.get_value("A") == "on"
    request = requests.get_nowait()
    assert isinstance(request, TagSetRequest)
    assert (request.tag_name, request.value, request.done) == ("A", "on", None)


def test_set_tag_failing_queue_raises():
    requests = queue.Queue(maxsize=1)
    requests.put_nowait("occupied")
    ctx = setup_tags(["A"], requests)
    with pytest.raises(RuntimeError, match="Failed to queue request"):
        ctx.set_tag("A", "x")


@pytest.mark.asyncio
async def test_wait_value_resolves_on_change():
    ctx = make_context()
    ctx.tag_changed("A", "first")
    current, changed = ctx.wait_value("A")
    assert current == "first"
    task = asyncio.ensure_future(changed)
    await asyncio.sleep(0)
    ctx.tag_changed("A", "second")
    assert await asyncio.wait_for(task, 1) == "second"


@pytest.mark.asyncio
async def test_wait_value_resolves_on_same_value():
    ctx = make_context()
    ctx.tag_changed("B", "x")
    _, changed = ctx.wait_value("B")
    task = asyncio.ensure_future(changed)
    await asyncio.sleep(0)
    ctx.tag_changed("B", "x")
    assert await asyncio.wait_for(task, 1) == "x"


@pytest.mark.asyncio
async def test_async_set_tag_completes_on_confirmation():
    requests = asyncio.Queue()
    ctx = setup_tags(["A"], requests)

    async def confirm():
        request = await requests.get()
        request.done.set_result(None)
        return request

    consumer = asyncio.ensure_future(confirm())
    await ctx.async_set_tag("A", "42")
    request = await consumer
    assert (request.tag_name, request.value) == ("A", "42")
    assert ctx.get_value("A") == "42"


@pytest.mark.asyncio
async def test_async_set_tag_propagates_error():
    requests = asyncio.Queue()
    ctx = setup_tags(["A"], requests)

    async def reject():
        request = await requests.get()
        request.done.set_exception(ValueError("write refused"))

    consumer = asyncio.ensure_future(reject())
    with pytest.raises(ValueError, match="write refused"):
        await ctx.async_set_tag("A", "1")
    await consumer


@pytest.mark.asyncio
async def test_async_set_tag_times_out_without_confirmation():
    requests = asyncio.Queue()
    ctx = TagContext(requests, confirm_timeout=0.05)
    ctx.add_tag("A")
    with pytest.raises(asyncio.TimeoutError):
        await ctx.async_set_tag("A", "1")
    assert requests.qsize() == 1
    assert ctx.get_value("A") == "1"