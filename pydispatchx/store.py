import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Union

from reactivex import Observable, Subject
from reactivex import operators as ops

from .actions import action_type_of, is_action_creator, replace_reducer_action
from .composition import apply_middleware_chain, normalize_middleware
from .config import StoreOptions, resolve_options
from .errors import (
    ConfigurationError,
    ListenerError,
    PyDispatchXError,
    ReducerError,
    StoreError,
    UnhandledActionKindError,
)
from .types import S, Listener, ReducerFunction, StateSelector, Unsubscribe

logger = logging.getLogger(__name__)

_UNSET = object()


class _NullLock:
    """thread_safe=False 時使用的空鎖。"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False


class _Subscription:
    """一次註冊。取消訂閱以註冊本身的身份為準，而不是 listener 或位置。"""

    __slots__ = ("listener", "active")

    def __init__(self, listener: Listener) -> None:
        self.listener = listener
        self.active = True


class MiddlewareAPI:
    """
    交給中介軟體與 thunk 的 Store 介面。

    dispatch 永遠指向 Store 組合完成後的完整管線，
    所以在中介軟體內再次 dispatch 會從最外層重新進入。
    """

    __slots__ = ("_store",)

    def __init__(self, store: "Store[Any]") -> None:
        self._store = store

    def dispatch(self, action: Any) -> Any:
        return self._store.dispatch(action)

    def get_state(self) -> Any:
        return self._store.get_state()

    @property
    def state(self) -> Any:
        return self._store.state


class Store(Generic[S]):
    """
    狀態容器，擁有狀態與 dispatch 管線，並在每次狀態提交後通知訂閱者。

    reducer 與中介軟體在建立時固定，中介軟體鏈只組合一次。
    透過 get_state 拿到的狀態是快照引用，呼叫者不得原地修改它；
    這是呼叫者的契約，Store 不做深度凍結（需要時可用 freeze_reducer）。
    """

    def __init__(
        self,
        reducer: ReducerFunction,
        middleware: Optional[Sequence[Any]] = None,
        initial_state: Any = _UNSET,
        options: Optional[Union[StoreOptions, Dict[str, Any]]] = None,
    ):
        """
        Args:
            reducer: 純函數 (state, action) -> state。
            middleware: 中介軟體列表，第一個為最外層。
            initial_state: 初始狀態；省略時使用 reducer.initial_state。
            options: StoreOptions 或可被驗證為 StoreOptions 的字典。

        Raises:
            ConfigurationError: reducer 不可呼叫、缺少初始狀態，或中介軟體重複。
        """
        self._options = resolve_options(options)
        if not callable(reducer):
            raise ConfigurationError("Reducer must be callable", component="reducer")
        if initial_state is _UNSET:
            if not hasattr(reducer, "initial_state"):
                raise ConfigurationError(
                    "initial_state is required when the reducer has no 'initial_state' attribute",
                    component="store",
                    config_key="initial_state",
                )
            initial_state = reducer.initial_state

        self._reducer = reducer
        self._state = initial_state
        # 可重入鎖：同一執行緒上的 thunk / listener 可以再次 dispatch
        self._lock = threading.RLock() if self._options.thread_safe else _NullLock()
        self._subscriptions: List[_Subscription] = []
        self._state_subject = Subject()
        self._is_reducing = False
        self._closed = False

        self._middleware = normalize_middleware(
            middleware or [], allow_duplicates=self._options.allow_duplicate_middleware
        )
        self._api = MiddlewareAPI(self)
        # 組合期間中介軟體若呼叫 dispatch 會拿到這個守衛
        self._dispatch: Callable[[Any], Any] = self._dispatch_while_constructing
        self._dispatch = apply_middleware_chain(self._middleware, self._api, self._dispatch_core)
        logger.debug("Store '%s' created with %d middleware", self._options.name, len(self._middleware))

    @property
    def options(self) -> StoreOptions:
        return self._options

    @property
    def state(self) -> S:
        """當前狀態的快照。"""
        return self._state

    def get_state(self) -> S:
        """
        返回當前狀態引用，O(1)，不會觸發任何狀態轉換。
        """
        return self._state

    def dispatch(self, action: Any) -> Any:
        """
        分發一個 action，經過完整的中介軟體鏈。

        Args:
            action: plain action，或由已安裝中介軟體處理的其他形式（例如 thunk）。

        Returns:
            plain action 返回 action 本身；thunk 返回 thunk 的執行結果；
            被中介軟體截斷時返回該中介軟體的返回值。

        Raises:
            UnhandledActionKindError: action 抵達 reducer 時不是 plain action。
            ReducerError: reducer 拋出異常，狀態不變。
            ThunkError: thunk 同步拋出異常。
            ListenerError: 訂閱者拋出異常，狀態已提交，剩餘訂閱者被略過。
            StoreError: Store 已關閉，或在 reducer 內部 dispatch。
        """
        if self._closed:
            raise StoreError(f"Store '{self._options.name}' is closed", operation="dispatch")
        return self._dispatch(action)

    def _dispatch_while_constructing(self, action: Any) -> Any:
        raise StoreError(
            "Dispatching while constructing middleware is not allowed. "
            "Other middleware would not be applied to this dispatch.",
            operation="dispatch",
        )

    def _dispatch_core(self, action: Any) -> Any:
        """
        管線末端：執行 reducer、提交狀態、通知訂閱者，最後返回 action。
        """
        action_type = action_type_of(action)
        if action_type is None:
            if is_action_creator(action):
                raise UnhandledActionKindError(
                    f"Got the action creator for '{action.type}' instead of an action; "
                    f"call it first, e.g. dispatch(creator())",
                    action=action,
                )
            kind = "thunk" if callable(action) else type(action).__name__
            raise UnhandledActionKindError(
                f"Cannot reduce a {kind}; install a middleware that handles it "
                f"or dispatch an action with a non-empty 'type'",
                action=action,
            )

        with self._lock:
            if self._is_reducing:
                raise StoreError("Reducers may not dispatch actions", operation="dispatch", action_type=action_type)

            prev_state = self._state
            self._is_reducing = True
            try:
                next_state = self._reducer(prev_state, action)
            except PyDispatchXError:
                raise
            except Exception as err:
                reducer_name = getattr(self._reducer, "__qualname__", type(self._reducer).__name__)
                raise ReducerError(
                    f"Reducer '{reducer_name}' raised {type(err).__name__} for {action_type}: {err}",
                    reducer_name=reducer_name,
                    action_type=action_type,
                    state=prev_state,
                ) from err
            finally:
                self._is_reducing = False

            # reducer 正常返回後才提交
            self._state = next_state
            if self._options.log_dispatch:
                logger.debug("[%s] %s committed (changed=%s)", self._options.name, action_type, next_state is not prev_state)

            # 狀態流先於訂閱者發送，巢狀 dispatch 的轉換才會排在本次之後
            self._state_subject.on_next((prev_state, next_state))
            self._notify(action_type)

        return action

    def _notify(self, action_type: str) -> None:
        # 通知開始時的快照，本輪新增的訂閱者不會被呼叫
        snapshot = list(self._subscriptions)
        called: List[Listener] = []
        for subscription in snapshot:
            listener = subscription.listener
            # 同一個 listener 註冊多次，本輪也只呼叫一次
            if listener in called:
                continue
            called.append(listener)
            try:
                listener()
            except PyDispatchXError:
                raise
            except Exception as err:
                name = getattr(listener, "__qualname__", type(listener).__name__)
                raise ListenerError(
                    f"Listener '{name}' raised {type(err).__name__}: {err}",
                    listener_name=name,
                    action_type=action_type,
                ) from err

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """
        註冊一個無參數的 listener，在每次狀態提交後以註冊順序被呼叫。

        Args:
            listener: 回調函數。

        Returns:
            取消這一次註冊的函數；重複呼叫沒有效果。
        """
        if not callable(listener):
            raise StoreError("Listener must be callable", operation="subscribe")

        subscription = _Subscription(listener)
        with self._lock:
            if self._closed:
                raise StoreError(f"Store '{self._options.name}' is closed", operation="subscribe")
            if self._is_reducing:
                raise StoreError("Cannot subscribe while the reducer is executing", operation="subscribe")
            self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            with self._lock:
                if not subscription.active:
                    return
                subscription.active = False
                self._subscriptions.remove(subscription)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    def select(self, selector: Optional[StateSelector] = None) -> Observable:
        """
        選擇狀態的一部分進行觀察。

        Args:
            selector: 一個函數，接收整個狀態並返回希望觀察的部分；
                省略時發送完整的 (old_state, new_state)。

        Returns:
            一個可觀察對象，只在選定部分變化時發送 (old_value, new_value)。
        """
        if selector is None:
            return self._state_subject.pipe(
                ops.filter(lambda state_tuple: state_tuple[0] is not state_tuple[1])
            )

        return self._state_subject.pipe(
            ops.map(lambda state_tuple: (selector(state_tuple[0]), selector(state_tuple[1]))),
            ops.filter(lambda pair: pair[0] != pair[1]),
        )

    def replace_reducer(self, reducer: ReducerFunction) -> None:
        """
        替換 reducer，並 dispatch 一次 replace_reducer_action 讓新 reducer 有機會調整狀態。
        """
        if not callable(reducer):
            raise ConfigurationError("Reducer must be callable", component="reducer")
        with self._lock:
            if self._is_reducing:
                raise StoreError("Cannot replace the reducer while it is executing", operation="replace_reducer")
            self._reducer = reducer
        self.dispatch(replace_reducer_action())

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        清空訂閱者、結束狀態流，並呼叫中介軟體的 teardown。重複呼叫沒有效果。
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for subscription in self._subscriptions:
                subscription.active = False
            self._subscriptions.clear()

        for mw in self._middleware:
            teardown = getattr(mw, "teardown", None)
            if callable(teardown):
                teardown()
        self._state_subject.on_completed()
        logger.debug("Store '%s' closed", self._options.name)

    def __enter__(self) -> "Store[S]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_store(
    reducer: ReducerFunction,
    middleware: Optional[Sequence[Any]] = None,
    initial_state: Any = _UNSET,
    options: Optional[Union[StoreOptions, Dict[str, Any]]] = None,
) -> Store[Any]:
    """
    創建一個新的 Store 實例。

    Args:
        reducer: 純函數 (state, action) -> state。
        middleware: 中介軟體列表，列表順序即執行順序。
        initial_state: 初始狀態；省略時使用 reducer.initial_state。
        options: StoreOptions 或其字典形式。

    Returns:
        Store: 新創建的 Store 實例。
    """
    return Store(reducer, middleware, initial_state, options)
