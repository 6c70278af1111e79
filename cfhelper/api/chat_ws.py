"""
cfhelper.api.chat_ws
~~~~~~~~~~~~~~~~~~~~

WebSocket 实时聊天接口：多房间模式。

提供 ``/cfhelper/api/ws?room=<id>`` 端点，客户端通过 ``room`` 查询参数加入指定房间
（缺省为 ``settings.DEFAULT_ROOM``）。同一房间内的所有连接共享消息日志，
消息与助手回复广播给房间内全体连接。

消息协议（JSON 文本帧）:
  - ``{"type": "add", ...}``           ：新消息，用户消息会触发助手回复
  - ``{"type": "update", ...}``        ：原位更新已有消息
  - ``{"type": "all", "messages": []}``：连接建立时下发的完整快照
  - ``session_loading / session_ready / session_failed``：检索会话状态
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, WebSocket
from fastapi.responses import JSONResponse

from cfhelper.api.deps import get_ws_room_manager
from cfhelper.core.config import settings
from cfhelper.core.logging import get_logger, request_id_ctx_var
from cfhelper.schemas.api_response import ApiResponse
from cfhelper.services.room_manager import RoomManager

logger = get_logger(__name__)

router: APIRouter = APIRouter()

WS_PATH: str = "/cfhelper/api/ws"


@router.websocket(WS_PATH)
async def websocket_chat_endpoint(
    websocket: WebSocket,
    room: str | None = None,
    manager: RoomManager = Depends(get_ws_room_manager),
) -> None:
    """WebSocket 聊天室端点。

    Args:
        websocket: FastAPI WebSocket 连接对象。
        room: 房间 ID，缺省为 ``settings.DEFAULT_ROOM``。
        manager: 房间管理器。
    """
    room_id = room or settings.DEFAULT_ROOM
    ws_req_id = f"ws-{uuid.uuid4().hex[:8]}"
    token = request_id_ctx_var.set(ws_req_id)
    try:
        chat_room = manager.acquire(room_id)
        try:
            await chat_room.serve(websocket)
        finally:
            manager.release(room_id)
    finally:
        request_id_ctx_var.reset(token)


@router.get(WS_PATH, include_in_schema=False)
async def websocket_upgrade_required() -> JSONResponse:
    """非 WebSocket 请求访问聊天端点时返回 426。"""
    return ApiResponse.fail_response("Expected Upgrade: websocket", 426)
