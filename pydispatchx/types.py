"""
PyDispatchX 共用類型定義模組。

集中定義 dispatch 管線中各個接縫處的函數簽名與協議，
讓 Store、中介軟體與 thunk 的作者共享同一套類型語言。
"""
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from typing_extensions import Protocol, TypedDict, runtime_checkable


S = TypeVar("S")  # 狀態類型
P = TypeVar("P")  # 負載類型


# ———— Dispatch 相關 ————
DispatchFunction = Callable[[Any], Any]
NextDispatch = Callable[[Any], Any]
GetState = Callable[[], Any]

# 訂閱者不接收任何參數，取消訂閱的 handle 也一樣
Listener = Callable[[], None]
Unsubscribe = Callable[[], None]

# thunk: (dispatch, get_state) -> result，result 可能是 awaitable
ThunkFunction = Callable[..., Union[Any, Awaitable[Any]]]

ReducerFunction = Callable[[S, Any], S]

MiddlewareFunction = Callable[[NextDispatch], DispatchFunction]

StateSelector = Callable[[Any], Any]


@runtime_checkable
class StoreAPI(Protocol):
    """中介軟體可見的 Store 介面，僅暴露 dispatch 與 get_state。"""

    def dispatch(self, action: Any) -> Any: ...

    def get_state(self) -> Any: ...

    @property
    def state(self) -> Any: ...


MiddlewareFactory = Callable[[StoreAPI], MiddlewareFunction]


@runtime_checkable
class Middleware(Protocol):
    """三段柯里化的中介軟體協議：(store_api) -> (next) -> (action) -> result。"""

    def __call__(self, store: StoreAPI) -> MiddlewareFunction: ...


class ActionContext(TypedDict, total=False):
    """hook 型中介軟體在 action_context 內傳遞的上下文。"""

    action: Any
    prev_state: Any
    next_state: Any
    result: Any
    error: Optional[BaseException]
    extra: Dict[str, Any]
