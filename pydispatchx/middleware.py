"""
基於 PyDispatchX 的中介軟體定義模組。

此模組提供各種中介軟體，用於在動作分發過程中插入自定義邏輯，
實現 thunk、日誌記錄、錯誤處理、過濾與性能監控等功能。
"""

import asyncio
import contextlib
import logging
import threading
import time
from typing import Any, Callable, Dict, Generator, List, Optional, Tuple

from .actions import action_type_of, global_error, is_plain_action, is_thunk
from .errors import PyDispatchXError, ThunkError, global_error_handler
from .types import ActionContext, DispatchFunction, MiddlewareFunction, NextDispatch, StoreAPI

logger = logging.getLogger(__name__)


def describe_action(action: Any) -> str:
    """給日誌用的 action 描述：plain action 取類型，thunk 取函數名稱。"""
    action_type = action_type_of(action)
    if action_type is not None:
        return action_type
    if callable(action):
        return f"<thunk {getattr(action, '__qualname__', type(action).__name__)}>"
    return repr(action)


# ———— Base Middleware ————
class BaseMiddleware:
    """
    基礎中介類，定義所有中介可能實現的鉤子。

    中介軟體可以介入動作分發的流程，在動作到達 Reducer 前、
    動作處理完成後或出現錯誤時執行自定義邏輯。
    只實作鉤子的子類不需要 __call__，Store 會自動包裹它。
    """

    def on_next(self, action: Any, prev_state: Any) -> None:
        """
        在 action 發送給 reducer 之前調用。

        Args:
            action: 正在 dispatch 的 Action
            prev_state: dispatch 之前的 store.state
        """

    def on_complete(self, next_state: Any, action: Any) -> None:
        """
        在 reducer 處理完 action、訂閱者也通知完之後調用。

        Args:
            next_state: dispatch 之後的最新 store.state
            action: 剛剛 dispatch 的 Action
        """

    def on_error(self, error: Exception, action: Any) -> None:
        """
        如果 dispatch 過程中拋出異常，則調用此鉤子。異常之後仍會被重新拋出。

        Args:
            error: 拋出的異常
            action: 導致異常的 Action
        """

    def teardown(self) -> None:
        """
        當 Store 關閉時調用，用於清理中間件持有的資源。
        """

    @contextlib.contextmanager
    def action_context(self, action: Any, prev_state: Any) -> Generator[ActionContext, None, None]:
        """
        提供一個上下文管理器來處理 action 分發的生命週期。

        子類可以覆蓋此方法，但應負責呼叫適當的 hook 方法。

        Args:
            action: 要分發的 Action
            prev_state: 分發前的狀態

        Yields:
            包含上下文數據的字典，包裹者會在其中填入 result 與 next_state
        """
        context: ActionContext = {
            'action': action,
            'prev_state': prev_state,
            'result': None,
            'error': None,
            'extra': {},
        }
        self.on_next(action, prev_state)
        try:
            yield context
        except Exception as err:
            context['error'] = err
            self.on_error(err, action)
            raise
        self.on_complete(context.get('next_state'), action)


# ———— ThunkMiddleware ————
_NO_EXTRA = object()


class ThunkMiddleware(BaseMiddleware):
    """
    支援 dispatch 函數 (thunk)，可以在 thunk 內執行非同步邏輯或多次 dispatch。

    thunk 會立即以 Store 的 dispatch 與 get_state 被呼叫，返回值直接交還給呼叫者，
    thunk 本身永遠不會被傳到下游或 reducer。thunk 內的每次 dispatch 都從最外層的
    中介軟體重新進入整條管線。

    範例:
        ```python
        def fetch_user(user_id):
            def thunk(dispatch, get_state):
                dispatch(request_user(user_id))
                try:
                    user = api.fetch_user(user_id)
                    dispatch(request_user_success(user))
                except ApiError as e:
                    dispatch(request_user_failure(str(e)))
            return thunk

        store.dispatch(fetch_user("user123"))
        ```

    async def 定義的 thunk 會返回 coroutine，由呼叫者自行 await；
    在暫停點之後發生的錯誤屬於該 coroutine，Store 不會察覺。
    """

    def __init__(self, extra_argument: Any = _NO_EXTRA) -> None:
        """
        Args:
            extra_argument: 若提供，會作為第三個參數傳給每個 thunk。
        """
        self.extra_argument = extra_argument

    def __call__(self, store: StoreAPI) -> MiddlewareFunction:
        """
        配置 Thunk 中介軟體。

        Args:
            store: Store 介面

        Returns:
            配置函數，接收 next_dispatch 並返回新的 dispatch 函數
        """
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if is_thunk(action):
                    return self._run_thunk(action, store)
                return next_dispatch(action)
            return dispatch
        return middleware

    def _run_thunk(self, thunk: Callable[..., Any], store: StoreAPI) -> Any:
        args: Tuple[Any, ...] = (store.dispatch, store.get_state)
        if self.extra_argument is not _NO_EXTRA:
            args += (self.extra_argument,)
        try:
            return thunk(*args)
        except PyDispatchXError:
            # 巢狀 dispatch 產生的錯誤（例如 ReducerError）原樣往外傳
            raise
        except Exception as err:
            name = getattr(thunk, "__qualname__", type(thunk).__name__)
            raise ThunkError(
                f"Thunk '{name}' raised {type(err).__name__}: {err}",
                thunk_name=name,
            ) from err


# 現成的實例，可直接放進中介軟體列表
thunk_middleware = ThunkMiddleware()


# ———— AwaitableMiddleware ————
class AwaitableMiddleware(BaseMiddleware):
    """
    支援 dispatch coroutine/awaitable，完成後自動 dispatch 返回的 action。

    必須在執行中的事件迴圈內使用。coroutine 失敗或被取消只會記錄日誌，
    因為錯誤發生在暫停點之後，原本的 dispatch 呼叫早已返回。
    """

    def __call__(self, store: StoreAPI) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if asyncio.iscoroutine(action) or asyncio.isfuture(action):
                    task = asyncio.ensure_future(action)
                    task.add_done_callback(lambda fut: self._on_done(store, fut))
                    return task
                return next_dispatch(action)
            return dispatch
        return middleware

    def _on_done(self, store: StoreAPI, fut: "asyncio.Future[Any]") -> None:
        if fut.cancelled():
            logger.debug("Awaitable action cancelled: %r", fut)
            return
        err = fut.exception()
        if err is not None:
            logger.error("Awaitable action failed: %s", err, exc_info=err)
            return
        result = fut.result()
        if is_plain_action(result) or is_thunk(result):
            store.dispatch(result)


# ———— LoggerMiddleware ————
class LoggerMiddleware(BaseMiddleware):
    """
    日誌中介，記錄每個 action 發送前和發送後的 state。

    使用場景:
    - 偵錯時需要觀察每次 state 的變化。
    - 確保 action 的執行順序正確。
    """

    def __init__(self, level: int = logging.INFO, log: Optional[logging.Logger] = None) -> None:
        self.level = level
        self.log = log or logger

    def on_next(self, action: Any, prev_state: Any) -> None:
        self.log.log(self.level, "dispatching %s", describe_action(action))
        self.log.debug("state before %s: %r", describe_action(action), prev_state)

    def on_complete(self, next_state: Any, action: Any) -> None:
        self.log.log(self.level, "state after %s: %r", describe_action(action), next_state)

    def on_error(self, error: Exception, action: Any) -> None:
        self.log.error("error in %s: %s", describe_action(action), error)


# ———— FilterMiddleware ————
class FilterMiddleware(BaseMiddleware):
    """
    只放行 predicate 返回 True 的 action，其餘直接在此截斷。

    被截斷的 action 不會到達 reducer，狀態不變，dispatch 返回 None。
    """

    def __init__(self, predicate: Callable[[Any], bool]) -> None:
        self.predicate = predicate
        self.dropped = 0

    def __call__(self, store: StoreAPI) -> MiddlewareFunction:
        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                if not self.predicate(action):
                    self.dropped += 1
                    logger.debug("Filtered out %s", describe_action(action))
                    return None
                return next_dispatch(action)
            return dispatch
        return middleware


# ———— ErrorMiddleware ————
class ErrorMiddleware(BaseMiddleware):
    """
    捕獲 dispatch 過程中的異常，dispatch 全域錯誤 Action 並交給 global_error_handler，
    然後重新拋出原本的異常。

    使用場景:
    - 當需要統一處理所有異常並記錄或上報時。
    """

    def __init__(self, report: bool = True) -> None:
        self.report = report
        self.store: Optional[StoreAPI] = None
        self._local = threading.local()

    def __call__(self, store: StoreAPI) -> MiddlewareFunction:
        self.store = store

        def middleware(next_dispatch: NextDispatch) -> DispatchFunction:
            def dispatch(action: Any) -> Any:
                with self.action_context(action, store.state):
                    return next_dispatch(action)
            return dispatch
        return middleware

    def on_error(self, error: Exception, action: Any) -> None:
        # 處理錯誤 action 本身失敗時不再遞迴
        if getattr(self._local, "handling", False):
            return
        # 同一個異常穿過巢狀 dispatch（例如 thunk 內部）時只回報一次
        if getattr(error, "_pydispatchx_reported", False):
            return
        error._pydispatchx_reported = True
        error_info = {
            "error": str(error),
            "error_type": type(error).__name__,
            "action": describe_action(action),
            "timestamp": time.time(),
        }
        self._local.handling = True
        try:
            if self.report:
                global_error_handler.handle(error, action)
            if self.store is not None:
                try:
                    self.store.dispatch(global_error(error_info))
                except Exception as dispatch_err:
                    # 原本的異常仍會被重新拋出，這裡只記錄次要的失敗
                    logger.error("Failed to dispatch %s: %s", global_error.type, dispatch_err)
        finally:
            self._local.handling = False


# ———— DevToolsMiddleware ————
class DevToolsMiddleware(BaseMiddleware):
    """
    記錄每次 plain action 的 (prev_state, action, next_state) 快照，方便回溯調試。
    """

    def __init__(self, max_history: Optional[int] = None) -> None:
        self.max_history = max_history
        self.history: List[Tuple[Any, Any, Any]] = []

    @contextlib.contextmanager
    def action_context(self, action: Any, prev_state: Any) -> Generator[ActionContext, None, None]:
        context: ActionContext = {'action': action, 'prev_state': prev_state, 'error': None}
        yield context
        if is_plain_action(action):
            self.history.append((prev_state, action, context.get('next_state')))
            if self.max_history is not None and len(self.history) > self.max_history:
                del self.history[0]

    def get_history(self) -> List[Tuple[Any, Any, Any]]:
        """
        返回整個歷史快照列表。

        Returns:
            歷史快照列表，每項為 (prev_state, action, next_state)
        """
        return list(self.history)

    def teardown(self) -> None:
        self.history.clear()


# ———— PerformanceMonitorMiddleware ————
class PerformanceMonitorMiddleware(BaseMiddleware):
    """
    性能監控中間件，記錄 action 處理時間。
    """

    def __init__(self, threshold_ms: float = 100, log_all: bool = False):
        """
        Args:
            threshold_ms: 性能警告閾值，單位為毫秒，預設為 100 毫秒
            log_all: 是否記錄所有 action 的性能指標，預設為 False (只記錄超過閾值的)
        """
        self.threshold_ms = threshold_ms
        self.log_all = log_all
        self.metrics: Dict[str, List[float]] = {}

    @contextlib.contextmanager
    def action_context(self, action: Any, prev_state: Any) -> Generator[ActionContext, None, None]:
        context: ActionContext = {'action': action, 'prev_state': prev_state, 'error': None}
        action_name = describe_action(action)
        start_time = time.perf_counter()
        try:
            yield context
        except Exception as err:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning("Action %s failed after %.2fms: %s", action_name, elapsed_ms, err)
            raise
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        self.metrics.setdefault(action_name, []).append(elapsed_ms)
        if elapsed_ms > self.threshold_ms:
            logger.warning("Action %s exceeded threshold (%sms): %.2fms", action_name, self.threshold_ms, elapsed_ms)
        elif self.log_all:
            logger.info("Action %s took %.2fms", action_name, elapsed_ms)

    def get_metrics(self) -> Dict[str, Dict[str, float]]:
        """
        獲取性能指標統計信息。
        """
        result = {}
        for action_type, times in self.metrics.items():
            if not times:
                continue
            result[action_type] = {
                'avg': sum(times) / len(times),
                'max': max(times),
                'min': min(times),
                'count': len(times),
            }
        return result

    def teardown(self) -> None:
        self.metrics.clear()
