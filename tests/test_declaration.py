import logging
from typing import Annotated

import pytest

from assemblage.declaration import Declaration, create_declaration
from assemblage.descriptor import describe
from assemblage.errors import (
    ComponentReferenceSyntaxError,
    ConstructionFailedError,
    InvalidNullableWithDefaultError,
    MissingRequiredParamError,
    MultipleComponentIssuesError,
    UnknownPropertyError,
)
from assemblage.instances import Instance
from assemblage.markers import Component, Default, Name, Nullable, Param
from assemblage.settings import ContainerSettings
from assemblage.values import ValueStore
from model import Address, Clock, Person, State

HOME = {
    "home.street": "823 Elm Street",
    "home.city": "Oakland",
    "home.state": "CA",
    "home.zipcode": "94612",
}


def declare(component_type, name, properties, strict=True):
    return create_declaration(
        describe(component_type),
        name,
        ValueStore(properties),
        ContainerSettings(strict=strict),
    )


def test_explicit_overrides_set_values_and_defaults_fill_the_rest():
    home = declare(Address, "home", HOME)

    assert home.param("street").value == "823 Elm Street"
    assert home.param("COUNTRY").value == "USA"
    assert home.sorting_id == "home"


def test_anonymous_declarations_get_unique_sorting_ids():
    first = Declaration(describe(Clock))
    second = Declaration(describe(Clock))

    assert first.sorting_id.startswith("Clock")
    assert first.sorting_id != second.sorting_id


def test_override_keys_are_case_insensitive():
    home = declare(Address, "Home", {k.upper(): v for k, v in HOME.items()})

    assert home.param("city").value == "Oakland"


def test_bare_keys_apply_to_every_declaration_with_that_slot():
    values = ValueStore({**HOME, "country": "Canada"})
    home = create_declaration(describe(Address), "home", values, ContainerSettings())

    assert home.param("country").value == "Canada"
    assert values.is_used("country")


def test_explicit_overrides_win_over_bare_keys():
    home = declare(Address, "home", {**HOME, "country": "Canada", "home.country": "Mexico"})

    assert home.param("country").value == "Mexico"


def test_reference_override_sets_a_name_hint():
    jane = declare(Person, "jane", {"jane.age": "37", "jane.address": "@Home"})

    assert jane.reference("address").target == "Home"
    assert jane.reference("address").is_unresolved


def test_single_missing_param_is_wrapped_directly():
    with pytest.raises(ConstructionFailedError) as e:
        declare(Address, "home", {k: v for k, v in HOME.items() if k != "home.street"})

    assert e.value.component is Address
    assert isinstance(e.value.cause, MissingRequiredParamError)
    assert e.value.cause.param_name == "street"


def test_several_issues_are_reported_together():
    with pytest.raises(ConstructionFailedError, match="3 issues found") as e:
        declare(
            Address,
            "home",
            {"home.street": "823 Elm Street", "home.city": "Oakland", "home.colour": "red"},
        )

    issues = e.value.cause.issues
    assert isinstance(e.value.cause, MultipleComponentIssuesError)
    assert [type(issue) for issue in issues] == [
        UnknownPropertyError,
        MissingRequiredParamError,
        MissingRequiredParamError,
    ]


def test_unknown_property_only_warns_when_not_strict(caplog):
    with caplog.at_level(logging.WARNING):
        home = declare(Address, "home", {**HOME, "home.colour": "red"}, strict=False)

    assert home.param("city").value == "Oakland"
    assert "Unused property 'colour' in model.Address" in caplog.text


def test_reference_override_needs_at_sign():
    with pytest.raises(ConstructionFailedError, match="Component references must start with @") as e:
        declare(Person, "jane", {"jane.age": "37", "jane.address": "home"})

    assert isinstance(e.value.cause, ComponentReferenceSyntaxError)


class Lamp:
    def __init__(
        self,
        name: Annotated[str, Name],
        watts: Annotated[int, Param("watts")],
        dimmable: Annotated[bool, Param("dimmable")],
        label: Annotated[str, Param("label"), Nullable],
        clock: Annotated[Clock, Param("clock"), Component, Default("@kitchen")],
    ):
        self.name = name
        self.watts = watts
        self.dimmable = dimmable
        self.label = label
        self.clock = clock


def test_numeric_and_boolean_params_default_to_zero():
    lamp = declare(Lamp, "lamp", {})
    clock = Clock()
    lamp.reference("clock").resolve_to(Instance("kitchen", clock))

    built = lamp.build(lambda event_type: None)

    assert built.name == "lamp"
    assert built.object is lamp.instance
    assert lamp.is_built
    assert (lamp.instance.watts, lamp.instance.dimmable) == (0, False)
    assert lamp.instance.label is None
    assert lamp.instance.clock is clock
    assert lamp.instance.name == "lamp"


def test_reference_default_is_a_name_hint():
    lamp = declare(Lamp, "lamp", {})

    assert lamp.reference("clock").target == "kitchen"


def test_build_converts_values():
    home = declare(Address, "home", HOME)
    home.build(lambda event_type: None)

    assert home.instance.state is State.CA


def test_build_wraps_failures_in_the_component_type():
    home = declare(Address, "home", {**HOME, "home.state": "ZZ"})

    with pytest.raises(ConstructionFailedError, match="Cannot convert value of param 'state'") as e:
        home.build(lambda event_type: None)

    assert e.value.component is Address
    assert not home.is_built


class Heater:
    def __init__(self, setting: Annotated[str, Param("setting"), Nullable, Default("low")]):
        pass


def test_nullable_with_default_is_contradictory():
    with pytest.raises(ConstructionFailedError) as e:
        declare(Heater, "heater", {})

    assert isinstance(e.value.cause, InvalidNullableWithDefaultError)
    assert e.value.cause.param_value == "low"
