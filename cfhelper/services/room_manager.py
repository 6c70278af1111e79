"""
cfhelper.services.room_manager
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间管理器：全局唯一，管理所有聊天室的生命周期。

房间在首次被引用时创建；连接数归零后进入宽限期，宽限期内有新连接则保留，
否则丢弃房间状态（消息日志不做持久化）。
在 FastAPI lifespan 中初始化并挂载于 ``app.state.room_manager``。
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable

from cfhelper.core.config import settings
from cfhelper.core.logging import get_logger
from cfhelper.schemas.rooms import RoomInfoData
from cfhelper.services.chat_room import ChatRoom

logger = get_logger(__name__)


class RoomManager:
    """房间 ID → ``ChatRoom`` 的注册表。

    - ``acquire(room_id)``  → 获取/创建房间，并取消其待执行的回收
    - ``release(room_id)``  → 连接结束后调用，房间空闲时安排回收
    - ``list_rooms()``      → 列出所有活跃房间

    Attributes:
        idle_grace_seconds: 房间空闲后保留状态的时间。
    """

    def __init__(
        self,
        room_factory: Callable[[str], ChatRoom],
        idle_grace_seconds: float | None = None,
    ) -> None:
        self._room_factory = room_factory
        self.idle_grace_seconds: float = (
            settings.ROOM_IDLE_GRACE_SECONDS if idle_grace_seconds is None else idle_grace_seconds
        )
        self._rooms: dict[str, ChatRoom] = {}
        self._disposals: dict[str, asyncio.TimerHandle] = {}

    def acquire(self, room_id: str) -> ChatRoom:
        """获取指定房间（不存在则创建）。"""
        handle = self._disposals.pop(room_id, None)
        if handle is not None:
            handle.cancel()
            logger.debug("取消房间回收 | room=%s", room_id)

        room = self._rooms.get(room_id)
        if room is None:
            room = self._room_factory(room_id)
            self._rooms[room_id] = room
            logger.info("房间已创建 | room=%s | 活跃房间: %d", room_id, len(self._rooms))
        return room

    def release(self, room_id: str) -> None:
        """连接结束时调用；房间无在线连接时安排延迟回收。"""
        room = self._rooms.get(room_id)
        if room is None or room.online_count > 0 or room_id in self._disposals:
            return
        loop = asyncio.get_running_loop()
        self._disposals[room_id] = loop.call_later(
            self.idle_grace_seconds, self._dispose_if_idle, room_id,
        )
        logger.debug("房间空闲，%ss 后回收 | room=%s", self.idle_grace_seconds, room_id)

    def _dispose_if_idle(self, room_id: str) -> None:
        self._disposals.pop(room_id, None)
        room = self._rooms.get(room_id)
        if room is None or room.online_count > 0:
            return
        del self._rooms[room_id]
        logger.info(
            "房间已回收 | room=%s | 丢弃 %d 条消息 | 活跃房间: %d",
            room_id, len(room.log), len(self._rooms),
        )

    def get(self, room_id: str) -> ChatRoom | None:
        return self._rooms.get(room_id)

    def list_rooms(self) -> list[RoomInfoData]:
        """列出所有活跃房间的摘要信息。"""
        return [room.info() for room in self._rooms.values()]

    def close(self) -> None:
        """取消所有待执行的回收并清空房间。应在 lifespan shutdown 中调用。"""
        for handle in self._disposals.values():
            handle.cancel()
        self._disposals.clear()
        self._rooms.clear()

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
