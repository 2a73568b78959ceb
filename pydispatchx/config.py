"""
Store 的配置模型。
"""
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError


class StoreOptions(BaseModel):
    """
    建立 Store 時的可選配置。

    Attributes:
        name: Store 名稱，用於日誌與錯誤訊息。
        thread_safe: 是否以可重入鎖序列化 dispatch 的臨界區。
        allow_duplicate_middleware: 是否允許同一個中介軟體實例在鏈中出現多次。
        log_dispatch: 是否在每次提交狀態後輸出 debug 日誌。
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(default="store", min_length=1)
    thread_safe: bool = True
    allow_duplicate_middleware: bool = False
    log_dispatch: bool = False


def resolve_options(options: Optional[Union[StoreOptions, Dict[str, Any]]]) -> StoreOptions:
    """
    把使用者傳入的配置統一轉為 StoreOptions。

    Raises:
        ConfigurationError: 配置內容無法通過驗證時。
    """
    if options is None:
        return StoreOptions()
    if isinstance(options, StoreOptions):
        return options
    try:
        return StoreOptions.model_validate(options)
    except ValidationError as err:
        raise ConfigurationError(
            f"Invalid store options: {err.error_count()} error(s)",
            component="StoreOptions",
            config_key=", ".join(str(e["loc"][0]) for e in err.errors() if e["loc"]),
        ) from err
