"""
cfhelper.schemas.rooms
~~~~~~~~~~~~~~~~~~~~~~

房间相关的 Pydantic 响应模型。
"""
from __future__ import annotations

from pydantic import BaseModel, Field


class RoomInfoData(BaseModel):
    """房间摘要信息。"""

    room_id: str = Field(..., description="房间唯一标识")
    online_count: int = Field(..., description="当前在线连接数")
    message_count: int = Field(..., description="消息日志条数")
    session_state: str = Field(..., description="检索会话状态")
