import functools
from typing import Any, Callable, Dict

from .actions import action_type_of
from .immutable_utils import to_immutable
from .types import S, ReducerFunction

Reducer = ReducerFunction


def create_reducer(initial_state: S, *handlers) -> Reducer[S]:
    """
    創建一個 reducer 函式，用於處理狀態變更。

    Args:
        initial_state: 初始狀態。
        *handlers: 一系列 (action_type, handler_fn) 元組或使用 on 函式創建的處理器。

    Returns:
        一個 reducer 函式，根據 action 的類型執行對應的處理邏輯。
    """
    action_handlers: Dict[str, Callable[[S, Any], S]] = {}

    for handler in handlers:
        if isinstance(handler, tuple) and len(handler) == 2:
            action_type, handler_fn = handler
            action_handlers[action_type] = handler_fn
        else:
            action_handlers.update(handler)

    def reducer(state: S = initial_state, action: Any = None) -> S:
        if action is None:
            return state

        handler = action_handlers.get(action_type_of(action))
        if handler:
            return handler(state, action)
        # 沒有對應處理函式時必須返回同一個物件，Store 依賴身份比較偵測變更
        return state

    reducer.initial_state = initial_state  # type: ignore
    reducer.handlers = action_handlers  # type: ignore
    return reducer


def on(action_creator_or_type, handler):
    """
    創建一個 action 類型與處理函式的映射。

    Args:
        action_creator_or_type: Action 創建器函式或 Action 類型字串。
        handler: 處理該 Action 的函式，接收 (state, action) 並返回新狀態。

    Returns:
        一個包含 {action_type: handler} 的字典。
    """
    if callable(action_creator_or_type) and hasattr(action_creator_or_type, 'type'):
        action_type = action_creator_or_type.type
    else:
        action_type = str(action_creator_or_type)

    return {action_type: handler}


def combine_reducers(reducers: Dict[str, Reducer]) -> Reducer[Dict[str, Any]]:
    """
    把多個特性 reducer 組合成一個根 reducer，每個 reducer 只負責自己鍵下的子狀態。

    沒有任何子狀態變化時返回原本的根狀態物件，否則返回新的字典，
    舊的根狀態永遠不會被原地修改。

    Args:
        reducers: 特性鍵名到 reducer 的映射字典。

    Returns:
        根 reducer，並帶有 initial_state 屬性（由各子 reducer 的 initial_state 組成）。
    """
    feature_reducers = dict(reducers)
    initial_state = {
        key: getattr(reducer, "initial_state", None)
        for key, reducer in feature_reducers.items()
    }

    def root_reducer(state: Dict[str, Any] = None, action: Any = None) -> Dict[str, Any]:
        if state is None:
            state = initial_state

        next_state = None
        for feature_key, reducer in feature_reducers.items():
            prev_substate = state.get(feature_key, initial_state[feature_key])
            next_substate = reducer(prev_substate, action)
            if next_substate is not prev_substate:
                if next_state is None:
                    # 淺拷貝，避免修改原始 state
                    next_state = dict(state)
                next_state[feature_key] = next_substate

        return state if next_state is None else next_state

    root_reducer.initial_state = initial_state  # type: ignore
    root_reducer.reducers = feature_reducers  # type: ignore
    return root_reducer


def freeze_reducer(reducer: Reducer[S]) -> Reducer[S]:
    """
    包裝 reducer，讓每次產生的新狀態都被深度凍結為不可變結構。

    狀態沒有變化時原樣返回，保持身份比較的語意。
    """
    @functools.wraps(reducer)
    def frozen(state: S, action: Any) -> S:
        next_state = reducer(state, action)
        if next_state is state:
            return state
        return to_immutable(next_state)

    if hasattr(reducer, "initial_state"):
        frozen.initial_state = to_immutable(reducer.initial_state)  # type: ignore
    return frozen
