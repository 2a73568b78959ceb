"""
PyDispatchX：Redux 風格的 action 分發管線。

Store 擁有狀態，action 經過有序的中介軟體鏈到達 reducer，
狀態提交後同步通知訂閱者。
"""
import logging

from .errors import (
    PyDispatchXError, ActionError, UnhandledActionKindError, ReducerError,
    ThunkError, ListenerError, StoreError, MiddlewareError,
    ConfigurationError, ErrorHandler, global_error_handler, handle_error
)
from .actions import (
    Action, ActionPool, create_action, action_type_of, is_plain_action, is_thunk, is_action_creator,
    init_store, replace_reducer_action, global_error
)
from .middleware import (
    BaseMiddleware, LoggerMiddleware, ThunkMiddleware, thunk_middleware,
    AwaitableMiddleware, ErrorMiddleware, FilterMiddleware,
    DevToolsMiddleware, PerformanceMonitorMiddleware
)
from .composition import compose, apply_middleware_chain, normalize_middleware
from .reducers import create_reducer, on, combine_reducers, freeze_reducer
from .config import StoreOptions
from .store import Store, MiddlewareAPI, create_store
from .store_selectors import create_selector
from .immutable_utils import to_immutable, to_dict

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

# 匯出所有公開 API
__all__ = [
    # Errors
    "PyDispatchXError", "ActionError", "UnhandledActionKindError", "ReducerError",
    "ThunkError", "ListenerError", "StoreError", "MiddlewareError",
    "ConfigurationError", "ErrorHandler", "global_error_handler", "handle_error",

    # Actions
    "Action", "ActionPool", "create_action", "action_type_of", "is_plain_action", "is_thunk", "is_action_creator",
    "init_store", "replace_reducer_action", "global_error",

    # Middleware
    "BaseMiddleware", "LoggerMiddleware", "ThunkMiddleware", "thunk_middleware",
    "AwaitableMiddleware", "ErrorMiddleware", "FilterMiddleware",
    "DevToolsMiddleware", "PerformanceMonitorMiddleware",

    # Composition
    "compose", "apply_middleware_chain", "normalize_middleware",

    # Reducers
    "create_reducer", "on", "combine_reducers", "freeze_reducer",

    # Store
    "Store", "MiddlewareAPI", "create_store", "StoreOptions",

    # Selectors
    "create_selector",

    # Immutable Utils
    "to_immutable", "to_dict",
]
