"""
中介軟體組合引擎。

把有序的中介軟體列表 [m1, m2, ..., mn] 折疊成單一的 dispatch 函數，
等價於 m1(api)(m2(api)(...mn(api)(terminal)...))。
列表中的第一個中介軟體永遠是最外層：進入時最先看到 action，返回時最後看到結果。
"""
import functools
import inspect
import logging
from typing import Any, Callable, Iterable, List

from .errors import ConfigurationError, MiddlewareError
from .types import DispatchFunction, StoreAPI

logger = logging.getLogger(__name__)


def compose(*funcs: Callable[..., Any]) -> Callable[..., Any]:
    """
    由右至左組合函數：compose(f, g, h)(x) == f(g(h(x)))。

    沒有傳入任何函數時返回恆等函數。
    """
    if not funcs:
        return lambda arg: arg
    if len(funcs) == 1:
        return funcs[0]
    return functools.reduce(lambda f, g: lambda *args, **kwargs: f(g(*args, **kwargs)), funcs)


def _is_hook_middleware(mw: Any) -> bool:
    """只實作 on_next / on_complete / on_error 鉤子、本身不可呼叫的中介軟體物件。"""
    return not callable(mw) and hasattr(mw, "on_next")


def middleware_name(mw: Any) -> str:
    return getattr(mw, "__qualname__", None) or type(mw).__name__


def normalize_middleware(middlewares: Iterable[Any], allow_duplicates: bool = False) -> List[Any]:
    """
    整理中介軟體列表：類別會被無參數實例化，函數與實例原樣保留。

    Args:
        middlewares: 中介軟體工廠函數、類別或實例。
        allow_duplicates: 是否允許同一個實例重複出現。

    Returns:
        整理後的中介軟體列表，順序不變。

    Raises:
        ConfigurationError: 同一個實例重複出現，或是既不可呼叫也沒有鉤子的物件。
    """
    result: List[Any] = []
    seen = set()
    for m in middlewares:
        inst = m() if inspect.isclass(m) else m
        if not callable(inst) and not _is_hook_middleware(inst):
            raise ConfigurationError(
                f"Middleware {inst!r} is neither a factory nor a hook object",
                component="middleware",
            )
        if id(inst) in seen and not allow_duplicates:
            raise ConfigurationError(
                f"Middleware '{middleware_name(inst)}' appears more than once in the chain",
                component="middleware",
                config_key=middleware_name(inst),
            )
        seen.add(id(inst))
        result.append(inst)
    return result


def wrap_hook_middleware(mw: Any, store_api: StoreAPI, next_dispatch: DispatchFunction) -> DispatchFunction:
    """
    包裹物件型中介軟體。

    Args:
        mw: 中介軟體物件，需實現 action_context 或 on_next / on_complete / on_error 方法。
        store_api: 提供當前狀態的 Store 介面。
        next_dispatch: 下一層的 dispatch 方法。

    Returns:
        包裹後的 dispatch 方法。
    """
    if hasattr(mw, "action_context"):
        def dispatch(action: Any) -> Any:
            with mw.action_context(action, store_api.state) as context:
                result = next_dispatch(action)
                context["result"] = result
                context["next_state"] = store_api.state
                return result
        return dispatch

    def dispatch(action: Any) -> Any:
        mw.on_next(action, store_api.state)
        try:
            result = next_dispatch(action)
        except Exception as err:
            if hasattr(mw, "on_error"):
                mw.on_error(err, action)
            raise
        if hasattr(mw, "on_complete"):
            mw.on_complete(store_api.state, action)
        return result
    return dispatch


def apply_middleware_chain(middlewares: List[Any], store_api: StoreAPI, terminal: DispatchFunction) -> DispatchFunction:
    """
    構建中介軟體鏈，由右至左把中介軟體包裹在 terminal 外層。

    空列表直接返回 terminal 本身。

    Args:
        middlewares: 已經 normalize 過的中介軟體列表。
        store_api: 傳給每個中介軟體工廠的 Store 介面。
        terminal: 鏈的末端，也就是執行 reducer 並提交狀態的函數。

    Returns:
        組合完成、對外可見的 dispatch 函數。
    """
    dispatch = terminal
    for mw in reversed(middlewares):
        if _is_hook_middleware(mw):
            dispatch = wrap_hook_middleware(mw, store_api, dispatch)
            continue
        wrapped = mw(store_api)
        if not callable(wrapped):
            raise MiddlewareError(
                "Middleware factory must return a callable taking next_dispatch",
                middleware_name=middleware_name(mw),
            )
        dispatch = wrapped(dispatch)
        if not callable(dispatch):
            raise MiddlewareError(
                "Middleware must return a dispatch callable",
                middleware_name=middleware_name(mw),
            )
    logger.debug("Composed dispatch chain with %d middleware", len(middlewares))
    return dispatch
