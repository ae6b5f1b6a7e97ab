# hmiaudio

Building blocks for an audio server on an HMI panel: a small language for
selecting alarms, contexts that track tag values and alarm counts, and
asynchronous actions that a state machine can run.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Alarm filters

`hmiaudio.alarm_filter.parse_filter` turns a filter expression into a
tree of `BoolOp` nodes (`Not`, `And`, `Or`, `StringEqual`, `StateEqual`,
`IntEqual`, `IntLess`, `IntLessEqual`). `str()` of a node gives a fully
parenthesised form, and `evaluate(alarm)` checks an alarm against it:

```python
from hmiaudio.alarm_filter import parse_filter

flt = parse_filter("AlarmClassName = 'Warning' AND (State = 1 OR State = 'in,ack')")
print(str(flt))
# (AlarmClassName = 'Warning') AND ((State = 'Raised') OR (State = 'RaisedAcknowledged'))

flt.evaluate(alarm)
```

An alarm is any object with the attributes `name`, `alarm_class_name`,
`id`, `instance_id`, `priority` and `state`.

Supported criteria:

* `Name` and `AlarmClassName` compared with `=` or `!=` against a quoted
  string (`''` inside the quotes stands for a single quote).
* `ID`, `InstanceID` and `Priority` compared with `=`, `!=`, `<`, `<=`,
  `>`, `>=` against a 32-bit integer. `!=`, `>=` and `>` are stored as a
  `Not` of `=`, `<` and `<=`.
* `State` compared with `=` or `!=` against a number or a quoted state.

Criteria combine with `NOT`, `AND`, `OR` and parentheses; `AND` binds
tighter than `OR`. Any malformed expression, including one with an
unknown state, raises `FilterError`, whose `kind` is a `FilterErrorKind`
and whose `remaining` is the rest of the input where the problem was found.

### Alarm states

`AlarmState` is an `IntEnum`: `NORMAL` (0), `RAISED` (1),
`RAISED_CLEARED` (2), `RAISED_ACKNOWLEDGED` (5),
`RAISED_ACKNOWLEDGED_CLEARED` (6), `RAISED_CLEARED_ACKNOWLEDGED` (7) and
`REMOVED` (8). `AlarmState.parse` accepts the number, the name
(`'RaisedCleared'`, any case) or the transitions separated by spaces,
commas or slashes, using `incoming`/`in`, `outgoing`/`out` and
`acknowledged`/`ack` (`'in,out ack'` is `RAISED_CLEARED_ACKNOWLEDGED`).
It raises `AlarmStateError` otherwise. `label()` gives the canonical name.

## Interfaces

`hmiaudio.dispatch` defines the abstract classes that actions depend on:
`TagDispatcher` (`wait_value`, `get_value`), `AlarmDispatcher`
(`wait_alarm_filter`, `get_filter_count`), `TagSetter` (`async_set_tag`,
`set_tag`), `AlarmFunctions` (`ignore_matched_alarms`,
`restore_ignored_alarms`) and `Action` (async `run`). Dispatch failures
raise `DispatchError` subclasses: `TagNotFoundError`,
`AlarmFilterNotFoundError` and `DispatcherNotAvailableError`.

## Tags

`hmiaudio.tag_context.TagContext` implements `TagDispatcher` and
`TagSetter`. It keeps the last value of every tag added with `add_tag`
(values for other tags are ignored by `tag_changed`) and wakes up
coroutines waiting for a change. `setup_tags(names, queue)` builds one
from a list of tag names.

Writes go to the request queue given to the constructor (any object with
`put_nowait`, such as an `asyncio.Queue`) as `TagSetRequest` objects.
`set_tag` queues a request with `done=None`; `async_set_tag` puts a
future in `done` and waits `confirm_timeout` seconds (0.5 by default) for
whoever consumes the queue to complete it, raising
`asyncio.TimeoutError` otherwise.

## Alarms

`hmiaudio.alarm_context.AlarmContext` implements `AlarmDispatcher` and
`AlarmFunctions`. Filters are added with `add_filter(name, predicate, ...)`,
where `predicate` is a parsed `BoolOp`. `handle_notification(alarm)`
updates the set of alarms (keyed by `id` and `instance_id`) matching each
filter; notifications whose state is 128 are skipped. Matched alarms can be
ignored and restored; unless ignored permanently, an alarm stops being
ignored once it no longer matches. If `tag_matching` or `tag_ignored` is
given, the counts are written to those tags through the tag setter, which
is held by weak reference.

## Actions

`hmiaudio.actions`:

* `SequenceAction`, `ParallelAction` – run child actions one after
  another or concurrently (the first failure cancels the others).
* `RepeatAction` – run an action `count` times, or forever when `count`
  is None, raising once `repeat_limit.count()` returns false.
* `WaitAction` – sleep for a number of seconds.
* `PlayAction` – `await clip_queue.play(samples, priority, timeout)`.
* `GotoAction` – `await state_machine.goto(index)` on a weakly held state
  machine; does nothing once it is gone.
* `SetTagAction` – write a tag through a `TagSetter`.
* `SetVolumeAction` – `SetVolumeAction.constant(control, level)` or
  `SetVolumeAction.from_tag(control, tag, dispatcher)`; calls
  `control.set_volume(level)`, skipping tags whose value is unknown or not
  a number.
* `AlarmFunctionAction` – ignore (`AlarmOp.IGNORE`) or restore
  (`AlarmOp.RESTORE`) the alarms of a filter.
* `DebugAction` – write a text to the debug log.

`hmiaudio.waits`:

* `WaitTagAction` – wait until a tag meets a `TagCondition`
  (`TagConditionKind` covers numeric comparisons, string equality and
  `CHANGED`). Numbers are read with `parse_number`, which also accepts
  `true` and `false`.
* `WaitAlarmAction` – wait until a filter's count meets an
  `AlarmCondition`: `NONE`, `ANY`, `INC` or `DEC`.

## What this package does not do

It has no command-line program, opens no connection to an HMI runtime and
plays no audio. Loading and playing clips, controlling mixer volume,
running state machines, reading a configuration file and sending the
queued `TagSetRequest` objects are left to the application: it supplies
the clip queue, volume control, repeat limit and state machine objects
the actions call, and consumes the tag request queue.