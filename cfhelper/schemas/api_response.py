"""
cfhelper.schemas.api_response
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

HTTP 接口统一应答体 ``{code, data, msg}``。

WebSocket 帧使用 ``schemas.events`` 中的领域事件，不经过此封装。
"""
from __future__ import annotations

from typing import Any, Generic, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """统一 JSON 应答体。

    Attributes:
        code: 业务状态码，与 HTTP 状态码保持一致，200 表示成功。
        data: 业务数据。
        msg: 状态说明。
    """

    code: int = Field(default=200, description="业务状态码")
    data: T = Field(..., description="业务数据")
    msg: str = Field(default="success", description="状态消息")

    @classmethod
    def ok(cls, data: T, msg: str = "success") -> ApiResponse[T]:
        return cls(code=200, data=data, msg=msg)

    @classmethod
    def fail(cls, msg: str = "error", code: int = 500, data: Any = None) -> ApiResponse[Any]:
        return cls(code=code, data=data, msg=msg)

    @classmethod
    def fail_response(cls, msg: str, status_code: int) -> JSONResponse:
        """构造失败应答并包装为同状态码的 ``JSONResponse``（404 / 426 / 500 等）。"""
        body = cls.fail(msg=msg, code=status_code)
        return JSONResponse(status_code=status_code, content=body.model_dump())
