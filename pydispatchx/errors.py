"""
PyDispatchX 錯誤處理模組。

定義 dispatch 管線中所有可能出現的錯誤類型。
核心層只負責拋出，從不吞掉錯誤；記錄與恢復交由外部中介軟體或 ErrorHandler 處理。
"""
import functools
import logging
import traceback as tb
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PyDispatchXError(Exception):
    """所有 PyDispatchX 異常的基礎類。"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.traceback = "".join(tb.format_stack()[:-1])

    def to_dict(self) -> Dict[str, Any]:
        """
        轉換為可序列化的字典，方便日誌或報告使用。

        Returns:
            包含錯誤類型、訊息與細節的字典
        """
        data = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": {k: repr(v) for k, v in self.details.items()},
        }
        if self.__cause__ is not None:
            data["cause"] = repr(self.__cause__)
        return data

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({detail_str})"


class ActionError(PyDispatchXError):
    """與 Action 相關的錯誤。"""

    def __init__(self, message: str, action_type: Any = None, payload: Any = None, **kwargs: Any) -> None:
        details = {"action_type": action_type}
        if payload is not None:
            details["payload"] = payload
        details.update(kwargs)
        super().__init__(message, details)
        self.action_type = action_type


class UnhandledActionKindError(ActionError):
    """
    Action 抵達管線末端的 reducer 時，卻不是可被處理的 plain action。

    典型情況是在沒有安裝 ThunkMiddleware 的 Store 上 dispatch 一個 thunk。
    """

    def __init__(self, message: str, action: Any = None, **kwargs: Any) -> None:
        super().__init__(message, action_type=type(action).__name__, **kwargs)
        self.action = action


class ReducerError(PyDispatchXError):
    """Reducer 在 dispatch 過程中拋出異常；狀態保持不變，訂閱者不會被通知。"""

    def __init__(self, message: str, reducer_name: str, action_type: Any, state: Any = None, **kwargs: Any) -> None:
        details = {"reducer": reducer_name, "action_type": action_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.reducer_name = reducer_name
        self.action_type = action_type
        self.state = state


class ThunkError(PyDispatchXError):
    """Thunk 主體在同步執行階段拋出異常。"""

    def __init__(self, message: str, thunk_name: str, **kwargs: Any) -> None:
        details = {"thunk": thunk_name}
        details.update(kwargs)
        super().__init__(message, details)
        self.thunk_name = thunk_name


class ListenerError(PyDispatchXError):
    """訂閱者在通知過程中拋出異常；本輪剩餘的訂閱者不再被呼叫。"""

    def __init__(self, message: str, listener_name: str, action_type: Any = None, **kwargs: Any) -> None:
        details = {"listener": listener_name, "action_type": action_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.listener_name = listener_name
        self.action_type = action_type


class MiddlewareError(PyDispatchXError):
    """與 Middleware 相關的錯誤。"""

    def __init__(self, message: str, middleware_name: str, action_type: Optional[str] = None, **kwargs: Any) -> None:
        details = {"middleware": middleware_name, "action_type": action_type}
        details.update(kwargs)
        super().__init__(message, details)
        self.middleware_name = middleware_name


class StoreError(PyDispatchXError):
    """與 Store 相關的錯誤，例如在 reducer 內部再次 dispatch。"""

    def __init__(self, message: str, operation: str, **kwargs: Any) -> None:
        details = {"operation": operation}
        details.update(kwargs)
        super().__init__(message, details)
        self.operation = operation


class ConfigurationError(PyDispatchXError):
    """配置相關的錯誤。"""

    def __init__(self, message: str, component: str, config_key: Optional[str] = None, **kwargs: Any) -> None:
        details = {"component": component, "config_key": config_key}
        details.update(kwargs)
        super().__init__(message, details)
        self.component = component
        self.config_key = config_key


class ErrorHandler:
    """集中式錯誤處理器，用於日誌記錄與錯誤報告的分發。"""

    def __init__(self, log_to_console: bool = True, log_to_file: bool = False, log_file: Optional[str] = None) -> None:
        self.log_to_console = log_to_console
        self.log_to_file = log_to_file
        self.log_file = log_file
        self.handlers: List[Callable[..., None]] = []
        self._file_handler: Optional[logging.Handler] = None

        if log_to_file and log_file:
            self._file_handler = logging.FileHandler(log_file, encoding="utf-8")
            self._file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
            logger.addHandler(self._file_handler)

    def register_handler(self, handler: Callable[..., None]) -> None:
        """
        註冊一個錯誤回調。

        Args:
            handler: 接收 (error, action=None) 的回調
        """
        self.handlers.append(handler)

    def unregister_handler(self, handler: Callable[..., None]) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def handle(self, error: Union[PyDispatchXError, Exception], action: Any = None) -> None:
        """
        記錄錯誤並通知所有已註冊的回調。

        非 PyDispatchXError 會先被包裝，以便回調拿到統一的結構。
        """
        if not isinstance(error, PyDispatchXError):
            wrapped = PyDispatchXError(str(error), {"original_type": type(error).__name__})
            wrapped.__cause__ = error
            error = wrapped

        if self.log_to_console or self.log_to_file:
            logger.error("%s: %s", error.__class__.__name__, error)

        for handler in list(self.handlers):
            handler(error, action)


# 單例錯誤處理器
global_error_handler = ErrorHandler()


def handle_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    裝飾器：把函數拋出的異常交給 global_error_handler，然後原樣重新拋出。
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return func(*args, **kwargs)
        except Exception as err:
            global_error_handler.handle(err)
            raise
    return wrapper
