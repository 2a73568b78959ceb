import pytest
from immutables import Map

from pydispatchx import Action, combine_reducers, create_action, create_reducer, freeze_reducer, on

increment = create_action("[Counter] Increment")
rename = create_action("[User] Rename", lambda name: name)


@pytest.fixture
def counter_reducer():
    return create_reducer(
        {"count": 0},
        on(increment, lambda state, action: {**state, "count": state["count"] + 1}),
    )


@pytest.fixture
def user_reducer():
    return create_reducer(
        {"name": "anon"},
        ("[User] Rename", lambda state, action: {**state, "name": action.payload}),
    )


def test_create_reducer_handles_registered_types(counter_reducer):
    state = counter_reducer({"count": 0}, increment())
    assert state == {"count": 1}
    assert counter_reducer.initial_state == {"count": 0}
    assert "[Counter] Increment" in counter_reducer.handlers


def test_create_reducer_returns_same_state_for_unknown_type(counter_reducer):
    state = {"count": 3}
    assert counter_reducer(state, Action("unknown")) is state


def test_create_reducer_accepts_dict_actions(counter_reducer):
    assert counter_reducer({"count": 1}, {"type": "[Counter] Increment"}) == {"count": 2}


def test_on_with_string_type():
    assert list(on("X", lambda s, a: s)) == ["X"]


def test_combine_reducers_only_replaces_changed_slices(counter_reducer, user_reducer):
    root = combine_reducers({"counter": counter_reducer, "user": user_reducer})
    state = root.initial_state
    assert state == {"counter": {"count": 0}, "user": {"name": "anon"}}

    next_state = root(state, increment())
    assert next_state is not state
    assert next_state["counter"] == {"count": 1}
    assert next_state["user"] is state["user"]
    # 舊狀態沒有被原地修改
    assert state["counter"] == {"count": 0}


def test_combine_reducers_keeps_identity_when_nothing_changes(counter_reducer, user_reducer):
    root = combine_reducers({"counter": counter_reducer, "user": user_reducer})
    state = root.initial_state
    assert root(state, Action("noop")) is state


def test_combine_reducers_without_state_uses_initial(counter_reducer):
    root = combine_reducers({"counter": counter_reducer})
    assert root(None, increment()) == {"counter": {"count": 1}}


def test_freeze_reducer_returns_immutable_state(user_reducer):
    frozen = freeze_reducer(user_reducer)
    assert isinstance(frozen.initial_state, Map)

    state = frozen(frozen.initial_state, rename("bob"))
    assert isinstance(state, Map)
    assert state["name"] == "bob"

    assert frozen(state, Action("noop")) is state
