import pytest

from pydispatchx import (
    Action,
    ConfigurationError,
    FilterMiddleware,
    ReducerError,
    StoreError,
    UnhandledActionKindError,
    action_type_of,
    create_reducer,
    create_store,
    on,
    replace_reducer_action,
)

from .helpers import add, boom_reducer, counter, ignore, increment


def test_three_increments(plain_store):
    for _ in range(3):
        plain_store.dispatch(increment())
    assert plain_store.get_state() == 3
    assert plain_store.state == 3


def test_dispatch_returns_action(plain_store):
    action = add(5)
    assert plain_store.dispatch(action) is action


def test_dict_actions_are_plain_actions(plain_store):
    plain_store.dispatch({"type": "INC"})
    assert plain_store.get_state() == 1


def test_determinism():
    actions = [increment(), add(3), increment(), add(-2), Action("noop")]

    def run():
        store = create_store(counter, [], 10)
        for action in actions:
            store.dispatch(action)
        return store.get_state()

    assert run() == run() == 13


def test_get_state_does_not_transition(plain_store):
    calls = []
    plain_store.subscribe(lambda: calls.append(1))
    plain_store.get_state()
    plain_store.get_state()
    assert calls == []


def test_reducer_error_leaves_state_untouched():
    initial = {"count": 0}
    store = create_store(boom_reducer_dict, [], initial)
    calls = []
    store.subscribe(lambda: calls.append(store.get_state()))

    with pytest.raises(ReducerError) as exc_info:
        store.dispatch(Action("BOOM"))

    assert store.get_state() is initial
    assert calls == []
    assert isinstance(exc_info.value.__cause__, ValueError)
    assert exc_info.value.action_type == "BOOM"
    assert exc_info.value.state is initial


def boom_reducer_dict(state, action):
    if action_type_of(action) == "BOOM":
        raise ValueError("boom")
    if action_type_of(action) == "INC":
        return {**state, "count": state["count"] + 1}
    return state


def test_failed_dispatch_is_retryable():
    store = create_store(boom_reducer, [], 0)
    with pytest.raises(ReducerError):
        store.dispatch(Action("BOOM"))
    store.dispatch(increment())
    store.dispatch(increment())
    assert store.get_state() == 2


def test_thunk_without_thunk_middleware_is_unhandled(plain_store):
    calls = []

    def thunk(dispatch, get_state):
        calls.append("ran")

    with pytest.raises(UnhandledActionKindError):
        plain_store.dispatch(thunk)
    assert calls == []
    assert plain_store.get_state() == 0


@pytest.mark.parametrize("value", [42, "INC", {"kind": "INC"}, {"type": ""}, None])
def test_unrecognized_shapes_are_unhandled(plain_store, value):
    with pytest.raises(UnhandledActionKindError):
        plain_store.dispatch(value)
    assert plain_store.get_state() == 0


def test_ignore_middleware_short_circuits():
    seen = []

    def tracking_counter(state, action):
        seen.append(action_type_of(action))
        return counter(state, action)

    drop_ignored = FilterMiddleware(lambda action: action_type_of(action) != "IGNORE")
    store = create_store(tracking_counter, [drop_ignored], 0)

    assert store.dispatch(ignore()) is None
    assert store.get_state() == 0
    store.dispatch(increment())
    assert store.get_state() == 1
    assert seen == ["INC"]
    assert drop_ignored.dropped == 1


def test_middleware_order_is_execution_order():
    log = []

    def make(name):
        def middleware(store):
            def wrap(next_dispatch):
                def dispatch(action):
                    log.append(f"{name}-in")
                    result = next_dispatch(action)
                    log.append(f"{name}-out")
                    return result
                return dispatch
            return wrap
        return middleware

    def logging_counter(state, action):
        log.append("reduce")
        return counter(state, action)

    store = create_store(logging_counter, [make("first"), make("second")], 0)
    store.dispatch(increment())
    assert log == ["first-in", "second-in", "reduce", "second-out", "first-out"]


def test_initial_state_from_reducer_attribute():
    reducer = create_reducer({"count": 5}, on(increment, lambda s, a: {"count": s["count"] + 1}))
    store = create_store(reducer)
    assert store.get_state() == {"count": 5}


def test_missing_initial_state_is_configuration_error():
    with pytest.raises(ConfigurationError):
        create_store(counter)


def test_non_callable_reducer_rejected():
    with pytest.raises(ConfigurationError):
        create_store("not a reducer", [], 0)


def test_reducer_may_not_dispatch():
    holder = {}

    def reentrant_reducer(state, action):
        if action_type_of(action) == "INC":
            holder["store"].dispatch(Action("OTHER"))
        return state

    store = create_store(reentrant_reducer, [], 0)
    holder["store"] = store
    with pytest.raises(StoreError):
        store.dispatch(increment())
    # 失敗後 Store 仍可正常使用
    store.dispatch(Action("OTHER"))


def test_dispatch_during_middleware_construction_rejected():
    def eager(store):
        store.dispatch(increment())
        return lambda next_dispatch: next_dispatch

    with pytest.raises(StoreError):
        create_store(counter, [eager], 0)


def test_middleware_receives_store_api():
    seen = {}

    def inspector(store):
        def wrap(next_dispatch):
            def dispatch(action):
                seen["before"] = store.get_state()
                result = next_dispatch(action)
                seen["after"] = store.state
                return result
            return dispatch
        return wrap

    store = create_store(counter, [inspector], 0)
    store.dispatch(increment())
    assert seen == {"before": 0, "after": 1}


def test_middleware_can_redispatch_through_full_pipeline():
    log = []

    def outer(store):
        def wrap(next_dispatch):
            def dispatch(action):
                log.append(f"outer:{action_type_of(action)}")
                return next_dispatch(action)
            return dispatch
        return wrap

    def doubler(store):
        def wrap(next_dispatch):
            def dispatch(action):
                if action_type_of(action) == "DOUBLE":
                    store.dispatch(increment())
                    return store.dispatch(increment())
                return next_dispatch(action)
            return dispatch
        return wrap

    store = create_store(counter, [outer, doubler], 0)
    store.dispatch(Action("DOUBLE"))
    assert store.get_state() == 2
    assert log == ["outer:DOUBLE", "outer:INC", "outer:INC"]


def test_replace_reducer():
    store = create_store(counter, [], 1)
    seen = []

    def doubling(state, action):
        seen.append(action_type_of(action))
        if action_type_of(action) == "INC":
            return state * 2
        return state

    store.replace_reducer(doubling)
    store.dispatch(increment())
    assert store.get_state() == 2
    assert seen == [replace_reducer_action.type, "INC"]


def test_close_clears_subscribers_and_blocks_dispatch(plain_store):
    calls = []
    plain_store.subscribe(lambda: calls.append(1))
    plain_store.close()
    plain_store.close()

    assert plain_store.closed
    assert plain_store.listener_count == 0
    with pytest.raises(StoreError):
        plain_store.dispatch(increment())
    with pytest.raises(StoreError):
        plain_store.subscribe(lambda: None)
    assert calls == []


def test_context_manager_closes_store():
    with create_store(counter, [], 0) as store:
        store.dispatch(increment())
    assert store.closed
    assert store.get_state() == 1
