"""
cfhelper.core.errors
~~~~~~~~~~~~~~~~~~~~

聊天室领域异常。

检索与推理链路中的失败都以这些异常表达，由 ``ChatRoom`` 的派发边界
统一转换为助手回复，不会终止 WebSocket 连接。
"""
from __future__ import annotations

from typing import Any


class ChatRoomError(Exception):
    """所有聊天室领域异常的基类。"""

    def __init__(self, message: str, details: Any | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class SessionUnavailable(ChatRoomError):
    """无法建立检索会话 token。"""


class RetrievalTimeout(ChatRoomError):
    """等待检索结果超时。"""


class EmptyRetrieval(ChatRoomError):
    """检索结果为空或过短。"""


class BackendError(ChatRoomError):
    """推理或检索后端返回传输层 / 应用层错误。"""


class MalformedEvent(ChatRoomError):
    """入站帧无法解析为已知的领域事件。"""
