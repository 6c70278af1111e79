"""
cfhelper.services.message_log
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间消息日志：仅存在于内存、随房间生命周期销毁的有序消息表。
"""
from __future__ import annotations

from cfhelper.schemas.events import ChatMessage

# 会被送入推理后端的角色
CONVERSATION_ROLES: frozenset[str] = frozenset({"user", "assistant"})


class MessageLog:
    """按插入顺序保存消息，支持按 ID 幂等 upsert。

    已存在的 ID 被 upsert 时原位替换，位置保持不变。
    """

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []
        self._positions: dict[str, int] = {}

    def upsert(self, message: ChatMessage) -> bool:
        """插入或原位替换一条消息。

        Returns:
            ``True`` 表示新增，``False`` 表示替换了已有消息。
        """
        position = self._positions.get(message.id)
        if position is not None:
            self._messages[position] = message
            return False
        self._positions[message.id] = len(self._messages)
        self._messages.append(message)
        return True

    def get(self, message_id: str) -> ChatMessage | None:
        position = self._positions.get(message_id)
        return None if position is None else self._messages[position]

    def snapshot(self) -> list[ChatMessage]:
        """按插入顺序返回全部消息的副本。"""
        return list(self._messages)

    def history_as_conversation(self) -> list[dict[str, str]]:
        """转换为推理后端使用的 ``[{role, content}]`` 对话历史。

        只保留 user / assistant 消息，不做截断，上下文长度由后端自行处理。
        """
        return [
            {"role": msg.role, "content": msg.content}
            for msg in self._messages
            if msg.role in CONVERSATION_ROLES
        ]

    def __len__(self) -> int:
        return len(self._messages)
