"""
tests.test_events
~~~~~~~~~~~~~~~~~

WebSocket 线上协议（领域事件）解析与序列化测试。
"""
from __future__ import annotations

import json

import pytest

from cfhelper.core.errors import MalformedEvent
from cfhelper.schemas.events import (
    AddEvent,
    AllEvent,
    ChatMessage,
    SessionFailedEvent,
    SessionLoadingEvent,
    SessionReadyEvent,
    UpdateEvent,
    dump_event,
    parse_event,
)


class TestParseEvent:
    """测试入站帧解析。"""

    def test_add_event_with_optional_fields(self) -> None:
        raw = json.dumps({
            "type": "add",
            "id": "m1",
            "user": "Alice",
            "role": "user",
            "content": "How do I use KV?",
            "model": "@cf/meta/llama-3.1-8b-instruct",
            "platform": "web",
            "useMCP": True,
        })
        event = parse_event(raw)

        assert isinstance(event, AddEvent)
        assert event.use_mcp is True
        assert event.model == "@cf/meta/llama-3.1-8b-instruct"
        assert event.platform == "web"

    def test_add_event_defaults(self) -> None:
        event = parse_event('{"type":"add","id":"m1","user":"A","role":"user","content":"hi"}')
        assert isinstance(event, AddEvent)
        assert event.use_mcp is False
        assert event.model is None

    def test_update_event(self) -> None:
        event = parse_event('{"type":"update","id":"m1","user":"A","role":"user","content":"x"}')
        assert isinstance(event, UpdateEvent)
        assert event.to_message() == ChatMessage(id="m1", user="A", role="user", content="x")

    def test_bytes_input(self) -> None:
        event = parse_event(b'{"type":"session_loading"}')
        assert isinstance(event, SessionLoadingEvent)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "[1, 2, 3]",
            '{"type": "shout", "content": "hi"}',
            '{"content": "no type"}',
            '{"type": "add", "id": "m1"}',
            '{"type": "add", "id": "", "user": "A", "role": "user", "content": "x"}',
            '{"type": "add", "id": "m1", "user": "A", "role": "robot", "content": "x"}',
        ],
    )
    def test_malformed_frames_raise(self, raw: str) -> None:
        with pytest.raises(MalformedEvent):
            parse_event(raw)

    def test_unknown_type_details(self) -> None:
        with pytest.raises(MalformedEvent) as exc_info:
            parse_event('{"type": "shout"}')
        assert exc_info.value.details == {"type": "shout"}


class TestDumpEvent:
    """测试出站事件序列化。"""

    def test_session_ready_uses_camel_case(self) -> None:
        data = json.loads(dump_event(SessionReadyEvent(session_id="0123456789abcdef")))
        assert data == {"type": "session_ready", "sessionId": "0123456789abcdef"}

    def test_add_event_omits_empty_optional_fields(self) -> None:
        event = AddEvent(id="a1", user="CF Helper", role="assistant", content="answer")
        data = json.loads(dump_event(event))

        assert data["type"] == "add"
        assert data["useMCP"] is False
        assert "model" not in data
        assert "platform" not in data

    def test_all_event(self) -> None:
        event = AllEvent(messages=[ChatMessage(id="m1", user="A", role="user", content="hi")])
        data = json.loads(dump_event(event))
        assert data == {
            "type": "all",
            "messages": [{"id": "m1", "user": "A", "role": "user", "content": "hi"}],
        }

    def test_session_failed(self) -> None:
        data = json.loads(dump_event(SessionFailedEvent(error="boom")))
        assert data == {"type": "session_failed", "error": "boom"}

    def test_dumped_event_parses_back(self) -> None:
        """出站帧本身也是合法的入站帧。"""
        original = AddEvent(id="m9", user="Bob", role="user", content="yo", use_mcp=True)
        assert parse_event(dump_event(original)) == original
