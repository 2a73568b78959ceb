import pytest

from pydispatchx import (
    BaseMiddleware,
    ConfigurationError,
    MiddlewareError,
    apply_middleware_chain,
    compose,
    normalize_middleware,
)


class FakeAPI:
    def __init__(self, state=0):
        self.state = state

    def dispatch(self, action):
        raise AssertionError("not used")

    def get_state(self):
        return self.state


def logging_middleware(name, log):
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


def test_compose_order():
    add_one = lambda x: x + 1
    double = lambda x: x * 2
    assert compose(add_one, double)(3) == 7
    assert compose(double, add_one)(3) == 8
    assert compose()(5) == 5
    assert compose(add_one) is add_one


def test_empty_chain_returns_terminal():
    def terminal(action):
        return action

    assert apply_middleware_chain([], FakeAPI(), terminal) is terminal


def test_first_middleware_is_outermost():
    log = []

    def terminal(action):
        log.append("reducer")
        return action

    dispatch = apply_middleware_chain(
        [logging_middleware("first", log), logging_middleware("second", log)],
        FakeAPI(),
        terminal,
    )
    assert dispatch("a") == "a"
    assert log == ["first-in", "second-in", "reducer", "second-out", "first-out"]


def test_middleware_can_transform_action():
    def upper(store):
        return lambda next_dispatch: lambda action: next_dispatch(action.upper())

    dispatch = apply_middleware_chain([upper], FakeAPI(), lambda action: action)
    assert dispatch("abc") == "ABC"


def test_hook_middleware_is_wrapped():
    events = []

    class Recorder(BaseMiddleware):
        def on_next(self, action, prev_state):
            events.append(("next", action, prev_state))

        def on_complete(self, next_state, action):
            events.append(("complete", action, next_state))

        def on_error(self, error, action):
            events.append(("error", action, str(error)))

    api = FakeAPI(0)

    def terminal(action):
        if action == "bad":
            raise RuntimeError("nope")
        api.state += 1
        return action

    dispatch = apply_middleware_chain(normalize_middleware([Recorder]), api, terminal)
    dispatch("ok")
    with pytest.raises(RuntimeError):
        dispatch("bad")

    assert events == [
        ("next", "ok", 0),
        ("complete", "ok", 1),
        ("next", "bad", 1),
        ("error", "bad", "nope"),
    ]


def test_plain_hook_object_without_base_class():
    calls = []

    class Hooks:
        def on_next(self, action, prev_state):
            calls.append("next")

    dispatch = apply_middleware_chain(normalize_middleware([Hooks()]), FakeAPI(), lambda a: a)
    dispatch("x")
    assert calls == ["next"]


def test_normalize_rejects_duplicate_instance():
    mw = logging_middleware("dup", [])
    with pytest.raises(ConfigurationError):
        normalize_middleware([mw, mw])
    assert normalize_middleware([mw, mw], allow_duplicates=True) == [mw, mw]


def test_normalize_rejects_unusable_objects():
    with pytest.raises(ConfigurationError):
        normalize_middleware([object()])


def test_factory_must_return_callable():
    with pytest.raises(MiddlewareError):
        apply_middleware_chain([lambda store: None], FakeAPI(), lambda a: a)
