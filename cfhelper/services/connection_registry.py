"""
cfhelper.services.connection_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 连接登记表：维护某个房间的在线连接及其会话 token。
"""
from __future__ import annotations

import uuid
from collections.abc import Iterator

from fastapi import WebSocket


class ConnectionRegistry:
    """房间内在线连接的成员表。

    每个 ``ChatRoom`` 持有一个独立实例。登记表只负责成员关系，
    连接是否仍处于打开状态由广播器在投递时判断。

    Attributes:
        sessions: 连接 → 会话 token（仅用于日志，不参与寻址）。
    """

    def __init__(self) -> None:
        self.sessions: dict[WebSocket, str] = {}

    def register(self, websocket: WebSocket) -> str:
        """登记连接并返回分配给它的 token。重复登记返回原 token。"""
        token = self.sessions.get(websocket)
        if token is None:
            token = str(uuid.uuid4())
            self.sessions[websocket] = token
        return token

    def unregister(self, websocket: WebSocket) -> None:
        """移除连接，未登记的连接静默忽略。"""
        self.sessions.pop(websocket, None)

    def token_of(self, websocket: WebSocket) -> str | None:
        return self.sessions.get(websocket)

    def __iter__(self) -> Iterator[WebSocket]:
        # 迭代快照，遍历期间的增删不影响本次遍历
        return iter(list(self.sessions))

    def __contains__(self, websocket: object) -> bool:
        return websocket in self.sessions

    def __len__(self) -> int:
        return len(self.sessions)

    @property
    def online_count(self) -> int:
        """当前登记的连接数。"""
        return len(self.sessions)
