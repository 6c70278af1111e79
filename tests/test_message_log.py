"""
tests.test_message_log
~~~~~~~~~~~~~~~~~~~~~~

MessageLog 消息日志单元测试。
"""
from __future__ import annotations

from cfhelper.schemas.events import ChatMessage
from cfhelper.services.message_log import MessageLog


def msg(message_id: str, content: str, role: str = "user", user: str = "Alice") -> ChatMessage:
    return ChatMessage(id=message_id, user=user, role=role, content=content)


class TestUpsert:
    """测试插入与原位替换。"""

    def test_append_keeps_insertion_order(self) -> None:
        log = MessageLog()
        assert log.upsert(msg("m1", "first")) is True
        assert log.upsert(msg("m2", "second")) is True

        assert [m.id for m in log.snapshot()] == ["m1", "m2"]
        assert len(log) == 2

    def test_same_id_replaces_in_place(self) -> None:
        """重复 ID 替换内容，位置不变，条数不变。"""
        log = MessageLog()
        log.upsert(msg("m1", "first"))
        log.upsert(msg("m2", "second"))

        assert log.upsert(msg("m1", "edited")) is False

        snapshot = log.snapshot()
        assert [m.id for m in snapshot] == ["m1", "m2"]
        assert snapshot[0].content == "edited"
        assert len(log) == 2

    def test_get(self) -> None:
        log = MessageLog()
        log.upsert(msg("m1", "hello"))
        assert log.get("m1").content == "hello"
        assert log.get("missing") is None

    def test_snapshot_is_a_copy(self) -> None:
        """修改快照不影响日志本身。"""
        log = MessageLog()
        log.upsert(msg("m1", "hello"))
        snapshot = log.snapshot()
        snapshot.clear()
        assert len(log) == 1


class TestHistoryAsConversation:
    """测试对话历史转换。"""

    def test_empty_log(self) -> None:
        assert MessageLog().history_as_conversation() == []

    def test_only_user_and_assistant_roles(self) -> None:
        """system 消息不进入推理历史。"""
        log = MessageLog()
        log.upsert(msg("m1", "hi"))
        log.upsert(msg("s1", "Alice joined", role="system", user="system"))
        log.upsert(msg("a1", "hello!", role="assistant", user="SE Onboarding Assistant"))

        assert log.history_as_conversation() == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello!"},
        ]

    def test_reflects_replaced_content(self) -> None:
        log = MessageLog()
        log.upsert(msg("m1", "draft"))
        log.upsert(msg("m1", "final"))
        assert log.history_as_conversation() == [{"role": "user", "content": "final"}]
