"""Components shared by the tests; importable as ``model`` so ``new://model.X`` works."""

import enum
from dataclasses import dataclass
from typing import Annotated, Callable, Optional

from assemblage.container import Container
from assemblage.events import ObserverFailed
from assemblage.markers import (
    Component,
    Default,
    Event,
    Name,
    Nullable,
    Observes,
    Param,
    factory,
    tagged,
)


class State(enum.Enum):
    CA = "CA"
    NY = "NY"
    TX = "TX"


class Address:
    def __init__(
        self,
        street: Annotated[str, Param("street")],
        city: Annotated[str, Param("city")],
        state: Annotated[State, Param("state")],
        zipcode: Annotated[str, Param("zipcode")],
        country: Annotated[str, Param("country"), Default("USA")],
    ):
        self.street = street
        self.city = city
        self.state = state
        self.zipcode = zipcode
        self.country = country


class Person:
    def __init__(
        self,
        name: Annotated[str, Name],
        age: Annotated[int, Param("age")],
        address: Annotated[Address, Param("address"), Component],
    ):
        self.name = name
        self.age = age
        self.address = address


class Store:
    def __init__(self, location: Annotated[str, Param("location")]):
        self.location = location


class Shop:
    def __init__(self, store: Annotated[Store, Param("store"), Component]):
        self.store = store


class Clock:
    pass


class Alarm:
    def __init__(self, clock: Annotated[Clock, Param("clock"), Component]):
        self.clock = clock


class Snooze:
    def __init__(self, clock: Annotated[Optional[Clock], Param("clock"), Component, Nullable]):
        self.clock = clock


class Bomb:
    def __init__(self):
        raise RuntimeError("boom")


class Chicken:
    def __init__(self, egg: Annotated["Egg", Param("egg"), Component]):
        self.egg = egg


class Egg:
    def __init__(self, chicken: Annotated[Chicken, Param("chicken"), Component]):
        self.chicken = chicken


@tagged("paint")
class Paint:
    def __init__(self, color: Annotated[str, Param("color"), Default("white")]):
        self.color = color


class Palette:
    def __init__(self, paints: Annotated[list[Paint], Param("paints"), Component]):
        self.paints = paints


class Pool:
    def __init__(self, size):
        self.size = size

    @staticmethod
    @factory
    def create(size: Annotated[int, Param("size"), Default("4")]) -> "Pool":
        return Pool(size)


class Outer:
    class Inner:
        pass


@dataclass(frozen=True)
class Color:
    name: str


class Crimson(Color):
    pass


class ColorLog:
    """A component that observes colors once registered."""

    def __init__(self):
        self.colors = []

    def on_color(self, color: Annotated[Color, Observes]):
        self.colors.append(color.name)


class Brush:
    """A component that fires colors through an injected consumer."""

    def __init__(
        self,
        paint: Annotated[Callable[[Color], None], Event],
        mix: Annotated[Callable, Event(Color)],
    ):
        self.paint = paint
        self.mix = mix


class Janitor:
    """A component that needs the container it lives in."""

    def __init__(self, system: Annotated[Container, Param("system"), Component]):
        self.system = system


class FailureLog:
    def __init__(self):
        self.failures: list[ObserverFailed] = []

    def on_failure(self, event: Annotated[ObserverFailed, Observes]):
        self.failures.append(event)
