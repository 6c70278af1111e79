"""
cfhelper.services.broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间广播器：将领域事件序列化一次后投递给登记表中所有打开的连接。
"""
from __future__ import annotations

import asyncio

from fastapi import WebSocket
from fastapi.websockets import WebSocketState
from pydantic import BaseModel

from cfhelper.core.logging import get_logger
from cfhelper.schemas.events import dump_event
from cfhelper.services.connection_registry import ConnectionRegistry

logger = get_logger(__name__)


def is_open(websocket: WebSocket) -> bool:
    """连接的两端状态都为 CONNECTED 时才视为可投递。"""
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class RoomBroadcaster:
    """尽力而为的扇出投递。

    单个连接投递失败只记录日志，不影响其余连接，也不会抛给调用方。
    失败的连接不会被移出登记表，移除由连接自己的关闭流程负责。
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self.registry = registry

    async def broadcast(
        self, event: BaseModel, exclude: WebSocket | None = None,
    ) -> int:
        """向房间内所有打开的连接广播事件。

        Args:
            event: 待广播的领域事件。
            exclude: 可选，需要跳过的连接（通常是发送者）。

        Returns:
            成功投递的连接数。
        """
        payload: str = dump_event(event)
        targets = [ws for ws in self.registry if ws is not exclude and is_open(ws)]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(ws.send_text(payload) for ws in targets), return_exceptions=True,
        )
        delivered = 0
        for ws, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "广播失败，跳过该连接 | token=%s | %s",
                    self.registry.token_of(ws), result,
                )
            else:
                delivered += 1
        return delivered
