from assemblage.values import ValueStore, new_components


def test_lookup_ignores_case():
    store = ValueStore({"Jane.Age": "37"})

    assert store.get("jane.age") == "37"
    assert store.get("JANE.AGE") == "37"
    assert "jane.AGE" in store
    assert store.get("jane.height") is None


def test_later_loads_merge_rather_than_replace():
    store = ValueStore({"a": "1", "b": "2"})
    store.load({"A": "3"})

    assert store.get("a") == "3"
    assert store.get("b") == "2"
    assert len(store) == 2
    assert store.keys() == ["A", "b"]


def test_with_prefix_strips_prefix_and_marks_entries_used():
    store = ValueStore({"jane.age": "37", "Jane.Address": "@home", "home.city": "Oakland"})

    assert store.with_prefix("jane.") == {"age": "37", "Address": "@home"}
    assert store.is_used("JANE.ADDRESS")
    assert store.unused() == ["home.city"]


def test_unused_is_sorted_and_skips_at_keys():
    store = ValueStore({"zeta": "1", "@hidden": "2", "alpha": "3"})
    store.mark_used("ALPHA")

    assert store.unused() == ["zeta"]


def test_new_components_only_selects_new_declarations():
    properties = {"home": "new://model.Address", "home.city": "Oakland", "count": 3}

    assert new_components(properties) == [("home", "model.Address")]


def test_dotted_keys_never_declare_components():
    properties = {"home": "new://model.Address", "home.owner": "new://model.Person"}

    assert new_components(properties) == [("home", "model.Address")]
