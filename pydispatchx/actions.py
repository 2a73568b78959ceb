"""
基於 PyDispatchX 的 Action 定義模組。

此模組提供 Action 類別以及創建 Action 的功能。
Action 分為兩種：描述狀態變更意圖的不可變 plain action，
以及在執行時才會呼叫 dispatch / get_state 的 thunk（可呼叫物件）。
"""
import threading
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any, Callable, Dict, Generic, Optional, Tuple, Union

from immutables import Map

from .errors import ActionError
from .types import P


class Action(Generic[P]):
    """
    表示一個有類型和可選負載的 plain action。

    泛型參數:
        P: 負載的類型

    屬性:
        type: 動作的類型字符串，必須非空
        payload: 動作的負載數據（可選）
    """
    __slots__ = ('type', 'payload')

    def __init__(self, type: str, payload: Optional[P] = None):
        if not isinstance(type, str) or not type:
            raise ActionError("Action type must be a non-empty string", action_type=type, payload=payload)
        super().__setattr__('type', type)
        super().__setattr__('payload', payload)

    def __setattr__(self, name, value):
        if name not in self.__slots__:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")
        raise AttributeError(f"Cannot modify immutable instance attribute '{name}'")

    def __delattr__(self, name):
        raise AttributeError(f"Cannot delete immutable instance attribute '{name}'")

    def __eq__(self, other):
        if not isinstance(other, Action):
            return False
        return self.type == other.type and self.payload == other.payload

    def __hash__(self):
        try:
            return hash((self.type, self.payload))
        except TypeError:
            # 不可哈希的負載只以類型參與哈希
            return hash(self.type)

    def __repr__(self):
        return f"Action(type='{self.type}', payload={repr(self.payload)})"


class ActionPool:
    """
    Action 對象池，用於重用頻繁創建的相同 Action 對象。
    主要針對無負載或簡單負載的 Action 進行池化。

    帶負載的池以 LRU 方式限制在 max_payload_entries 筆以內，
    長時間運行、負載來自使用者輸入時也不會無限增長。
    """
    max_payload_entries: int = 1024
    _no_payload_pool: Dict[str, Action] = {}  # type -> Action (無負載)
    _simple_payload_pool: "OrderedDict[Tuple[str, type, Any], Action]" = OrderedDict()
    _lock = threading.Lock()

    @classmethod
    def get(cls, action_type: str, payload: Any = None) -> Action:
        """
        從池中獲取 Action 對象，如不存在則創建並加入池中。

        Args:
            action_type: Action 的類型
            payload: Action 的負載，默認為 None

        Returns:
            Action 對象
        """
        if payload is None:
            action = cls._no_payload_pool.get(action_type)
            if action is None:
                action = Action(action_type, None)
                cls._no_payload_pool[action_type] = action
            return action

        # 簡單負載 Action 池化 (僅支持可哈希的基本類型)
        # bool 與 int 的哈希相同，需以類型區分避免 True 取回 1
        if isinstance(payload, (int, str, float, frozenset)):
            key = (action_type, type(payload), payload)
            pool = cls._simple_payload_pool
            with cls._lock:
                action = pool.get(key)
                if action is not None:
                    pool.move_to_end(key)
                    return action
                action = Action(action_type, payload)
                pool[key] = action
                while len(pool) > cls.max_payload_entries:
                    pool.popitem(last=False)
            return action

        # 複雜負載不池化，直接創建新對象
        return Action(action_type, payload)

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._no_payload_pool.clear()
            cls._simple_payload_pool.clear()


def _process_payload(payload: Any) -> Any:
    """將字典 payload 轉換為不可變的 Map。"""
    if isinstance(payload, dict):
        return Map(payload)
    return payload


def create_action(action_type: str, prepare_fn: Optional[Callable[..., Any]] = None) -> Callable[..., Action[Any]]:
    """
    創建一個 Action 生成器函數。

    Args:
        action_type: Action 的類型標識符
        prepare_fn: 可選的預處理函數，用於在創建 Action 前處理輸入參數

    Returns:
        一個可調用的函數，用於生成指定類型的 Action

    範例:
        >>> increment = create_action("[Counter] Increment")
        >>> increment()  # 返回 Action(type="[Counter] Increment", payload=None)
        >>>
        >>> add = create_action("[Counter] Add", lambda amount: amount)
        >>> add(5)  # 返回 Action(type="[Counter] Add", payload=5)
    """
    if not isinstance(action_type, str) or not action_type:
        raise ActionError("Action type must be a non-empty string", action_type=action_type)

    def action_creator(*args: Any, **kwargs: Any) -> Action[Any]:
        if prepare_fn:
            payload = prepare_fn(*args, **kwargs)
        elif len(args) == 1 and not kwargs:
            payload = args[0]
        elif args or kwargs:
            payload = dict(zip(range(len(args)), args))
            payload.update(kwargs)
        else:
            # 無參數，無負載
            return ActionPool.get(action_type)
        return ActionPool.get(action_type, _process_payload(payload))

    # 添加 type 屬性以便於識別
    action_creator.type = action_type  # type: ignore
    action_creator.__name__ = f"create_{action_type}"
    return action_creator


def action_type_of(action: Any) -> Optional[str]:
    """
    取得 plain action 的類型識別字串。

    支援 Action 實例，以及帶有非空字串 "type" 鍵的 Mapping（例如 {"type": "INC"}）。
    其他任何值（包括 thunk）都返回 None。
    """
    if isinstance(action, Action):
        return action.type
    if isinstance(action, Mapping):
        action_type = action.get("type")
        if isinstance(action_type, str) and action_type:
            return action_type
    return None


def is_plain_action(action: Any) -> bool:
    """判斷是否為可以交給 reducer 的 plain action。"""
    return action_type_of(action) is not None


def is_action_creator(action: Any) -> bool:
    """判斷是否為 create_action 產生的 Action 生成器（帶有字串 type 屬性的可呼叫物件）。"""
    return callable(action) and isinstance(getattr(action, "type", None), str)


def is_thunk(action: Any) -> bool:
    """
    判斷是否為 thunk：任何不是 plain action 的可呼叫物件。

    Action 生成器不算 thunk，忘記呼叫它（dispatch(increment)）應該是錯誤而不是被默默執行。
    """
    return callable(action) and not is_plain_action(action) and not is_action_creator(action)


ActionLike = Union[Action[Any], Mapping, Callable[..., Any]]


# 根 Actions
init_store = create_action("[Root] Init Store")
replace_reducer_action = create_action("[Root] Replace Reducer")

# 錯誤 Action，payload 為錯誤資訊字典
global_error = create_action("[Error] GlobalError", lambda info: info)
