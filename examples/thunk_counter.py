"""
PyDispatchX 範例：計數器，展示 thunk、過濾與日誌中介軟體
"""
import asyncio
import logging

from pydispatchx import (
    FilterMiddleware,
    LoggerMiddleware,
    ThunkMiddleware,
    action_type_of,
    create_action,
    create_reducer,
    create_store,
    on,
)

increment = create_action("[Counter] Increment")
add = create_action("[Counter] Add", lambda amount: amount)
ignored = create_action("[Counter] Ignored")

counter_reducer = create_reducer(
    {"count": 0, "loading": False},
    on(increment, lambda state, action: {**state, "count": state["count"] + 1}),
    on(add, lambda state, action: {**state, "count": state["count"] + action.payload}),
)


def increment_twice(dispatch, get_state):
    dispatch(increment())
    dispatch(increment())
    return get_state()["count"]


async def load_remote_amount(dispatch, get_state):
    await asyncio.sleep(0.1)  # 模擬 I/O
    dispatch(add(40))
    return get_state()["count"]


def main():
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

    store = create_store(
        counter_reducer,
        [
            LoggerMiddleware(),
            FilterMiddleware(lambda action: action_type_of(action) != ignored.type),
            ThunkMiddleware(),
        ],
    )
    unsubscribe = store.subscribe(lambda: print(f"count = {store.get_state()['count']}"))

    store.dispatch(ignored())
    print("after thunk:", store.dispatch(increment_twice))
    print("after async thunk:", asyncio.run(store.dispatch(load_remote_amount)))

    unsubscribe()
    store.close()


if __name__ == "__main__":
    main()
