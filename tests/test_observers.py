import logging
import threading
from typing import Annotated, Any

import pytest

from assemblage.errors import InvalidObserverError
from assemblage.events import AfterEvent, BeforeEvent, ObserverAdded, ObserverFailed, ObserverRemoved
from assemblage.markers import Observes
from assemblage.observers import ObserverManager
from model import Color, Crimson, FailureLog


class Recorder:
    def __init__(self, name, log):
        self.name = name
        self.log = log

    def before(self, event: Annotated[BeforeEvent[Color], Observes]):
        self.log.append(f"{self.name}.before:{event.event.name}")

    def on_color(self, color: Annotated[Color, Observes]):
        self.log.append(f"{self.name}.on:{color.name}")

    def after(self, event: Annotated[AfterEvent[Color], Observes]):
        self.log.append(f"{self.name}.after:{event.event.name}")


class Failing:
    def __init__(self):
        self.calls = 0

    def on_color(self, color: Annotated[Color, Observes]):
        self.calls += 1
        raise ValueError(f"cannot handle {color.name}")


class Watcher:
    def __init__(self):
        self.events = []

    def on_anything(self, event: Annotated[BeforeEvent[Any], Observes]):
        self.events.append(event.event)


class Bookkeeper:
    def __init__(self):
        self.events = []

    def added(self, event: Annotated[ObserverAdded, Observes]):
        self.events.append(event)

    def removed(self, event: Annotated[ObserverRemoved, Observes]):
        self.events.append(event)


@pytest.fixture
def manager():
    return ObserverManager()


@pytest.fixture
def log():
    return []


def test_objects_without_handlers_are_not_observers(manager):
    assert manager.add_observer(object()) is False
    assert manager.observers == []


def test_observers_are_added_once(manager, log):
    recorder = Recorder("a", log)

    assert manager.add_observer(recorder) is True
    assert manager.add_observer(recorder) is False
    assert manager.observers == [recorder]


def test_remove_observer(manager, log):
    recorder = Recorder("a", log)
    manager.add_observer(recorder)

    assert manager.remove_observer(recorder) is True
    assert manager.remove_observer(recorder) is False


def test_phases_run_in_order_across_observers(manager, log):
    manager.add_observer(Recorder("a", log))
    manager.add_observer(Recorder("b", log))

    event = Color("red")
    assert manager.fire_event(event) is event

    assert log == [
        "a.before:red",
        "b.before:red",
        "a.on:red",
        "b.on:red",
        "a.after:red",
        "b.after:red",
    ]


def test_refiring_invokes_the_same_handlers(manager, log):
    manager.add_observer(Recorder("a", log))

    manager.fire_event(Color("red"))
    first = list(log)
    log.clear()
    manager.fire_event(Color("red"))

    assert log == first


def test_handlers_match_base_classes_of_the_event(manager, log):
    manager.add_observer(Recorder("a", log))

    manager.fire_event(Crimson("crimson"))

    assert "a.on:crimson" in log


def test_observer_changes_invalidate_cached_chains(manager, log):
    first = Recorder("a", log)
    manager.add_observer(first)
    manager.fire_event(Color("red"))

    second = Recorder("b", log)
    manager.add_observer(second)
    manager.remove_observer(first)
    log.clear()
    manager.fire_event(Color("blue"))

    assert log == ["b.before:blue", "b.on:blue", "b.after:blue"]


def test_failing_handler_does_not_stop_the_others(manager, log):
    failures = FailureLog()
    failing = Failing()
    manager.add_observer(failures)
    manager.add_observer(Recorder("a", log))
    manager.add_observer(failing)
    manager.add_observer(Recorder("b", log))

    event = Color("red")
    manager.fire_event(event)

    assert "a.on:red" in log and "b.on:red" in log
    assert len(failures.failures) == 1
    failure = failures.failures[0]
    assert failure.observer is failing
    assert failure.method == failing.on_color
    assert failure.event is event
    assert isinstance(failure.error, ValueError)


def test_failures_are_logged(manager, caplog):
    manager.add_observer(Failing())

    with caplog.at_level(logging.ERROR):
        manager.fire_event(Color("red"))

    assert "Error invoking Failing.on_color" in caplog.text
    assert "cannot handle red" in caplog.text


def test_failure_is_reported_again_on_the_next_dispatch(manager):
    failures = FailureLog()
    manager.add_observer(failures)
    manager.add_observer(Failing())

    manager.fire_event(Color("red"))
    manager.fire_event(Color("blue"))

    assert len(failures.failures) == 2


class FailsOnEverything:
    def on_color(self, color: Annotated[Color, Observes]):
        raise ValueError("color")

    def on_failure(self, event: Annotated[ObserverFailed, Observes]):
        raise ValueError("failure")


def test_failing_failure_handler_does_not_loop(manager):
    failures = FailureLog()
    manager.add_observer(FailsOnEverything())
    manager.add_observer(failures)

    manager.fire_event(Color("red"))

    assert [type(f.error) for f in failures.failures] == [ValueError]
    assert str(failures.failures[0].error) == "color"


def test_unhandled_events_are_logged(manager, caplog):
    with caplog.at_level(logging.INFO):
        manager.fire_event(Color("red"))

    assert "No observers for event model.Color" in caplog.text


def test_unhandled_container_events_are_not_logged(manager, caplog):
    with caplog.at_level(logging.INFO):
        manager.fire_event(ObserverAdded(object()))

    assert "No observers" not in caplog.text


def test_observer_changes_are_announced(manager, log):
    bookkeeper = Bookkeeper()
    manager.add_observer(bookkeeper)
    recorder = Recorder("a", log)

    manager.add_observer(recorder)
    manager.remove_observer(recorder)

    assert bookkeeper.events == [
        ObserverAdded(bookkeeper),
        ObserverAdded(recorder),
        ObserverRemoved(recorder),
    ]


def test_before_any_sees_every_event(manager):
    watcher = Watcher()
    manager.add_observer(watcher)
    watcher.events.clear()

    manager.fire_event(Color("red"))
    manager.fire_event("plain string")

    assert watcher.events == [Color("red"), "plain string"]


def test_consumer_binds_lazily(manager, log):
    consumer = manager.consumers_of(Color)
    manager.add_observer(Recorder("a", log))

    consumer(Color("red"))

    assert "a.on:red" in log
    assert consumer.event_type is Color


def test_consumer_rebinds_after_observer_changes(manager, log):
    consumer = manager.consumers_of(Color)
    first = Recorder("a", log)
    manager.add_observer(first)
    consumer(Color("red"))

    manager.remove_observer(first)
    log.clear()
    consumer(Color("blue"))

    assert log == []


def test_consumer_repr_names_event_type_and_chain(manager, log):
    manager.add_observer(Recorder("a", log))
    consumer = manager.consumers_of(Color)

    text = repr(consumer)

    assert text.startswith("EventConsumer(event_type=model.Color)")
    assert "Recorder.on_color" in text


def test_destroy_removes_every_observer(manager, log):
    manager.add_observer(Recorder("a", log))
    manager.add_observer(Watcher())

    manager.destroy()
    manager.fire_event(Color("red"))

    assert manager.observers == []
    assert log == []


def test_handler_must_take_one_event(manager):
    class TwoArguments:
        def on_color(self, color: Annotated[Color, Observes], extra: int):
            pass

    with pytest.raises(InvalidObserverError, match="must have only 1 parameter"):
        manager.add_observer(TwoArguments())


def test_phase_wrapper_needs_an_event_type(manager):
    class Unparameterised:
        def before(self, event: Annotated[BeforeEvent, Observes]):
            pass

    with pytest.raises(InvalidObserverError, match="BeforeEvent is missing its event type"):
        manager.add_observer(Unparameterised())


def test_handlers_must_be_public(manager):
    class Private:
        def _on_color(self, color: Annotated[Color, Observes]):
            pass

    with pytest.raises(InvalidObserverError, match="must be public"):
        manager.add_observer(Private())


def test_event_cannot_be_none(manager):
    with pytest.raises(ValueError):
        manager.fire_event(None)


class FailsOnEveryThread:
    """Fails on every color; the "outer" color first fires "other" from a second thread."""

    def __init__(self, manager):
        self.manager = manager

    def on_color(self, color: Annotated[Color, Observes]):
        if color.name == "outer":
            other = threading.Thread(target=self.manager.fire_event, args=(Color("other"),))
            other.start()
            other.join()
        raise ValueError(color.name)


def test_failures_on_other_threads_are_reported_independently(manager):
    failures = FailureLog()
    manager.add_observer(failures)
    manager.add_observer(FailsOnEveryThread(manager))

    manager.fire_event(Color("outer"))

    assert sorted(str(f.error) for f in failures.failures) == ["other", "outer"]


def test_consumer_drops_a_chain_built_while_observers_change(manager, log, monkeypatch):
    consumer = manager.consumers_of(Color)
    late = Recorder("late", log)
    build = manager._build_invocation

    def build_while_adding(event_type):
        invocation = build(event_type)
        if event_type is Color and late not in manager.observers:
            manager.add_observer(late)
        return invocation

    monkeypatch.setattr(manager, "_build_invocation", build_while_adding)

    consumer(Color("red"))
    consumer(Color("blue"))

    assert "late.on:red" not in log
    assert "late.on:blue" in log
