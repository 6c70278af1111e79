"""
cfhelper.schemas.events
~~~~~~~~~~~~~~~~~~~~~~~

WebSocket 线上协议：以 ``type`` 字段区分的领域事件联合体。

每一帧都是一个 JSON 对象:

.. code-block:: json

    {"type": "add", "id": "m1", "user": "Alice", "role": "user", "content": "hi"}

解析时先校验 ``type`` 是否为已知标签，再校验负载；任何失败都以
``MalformedEvent`` 抛出，由调用方丢弃该帧。
"""
from __future__ import annotations

import json
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from cfhelper.core.errors import MalformedEvent

MessageRole = Literal["user", "assistant", "system"]

# 入站消息未携带 user 字段时使用的作者名
ANONYMOUS_USER: str = "Anonymous"


class ChatMessage(BaseModel):
    """房间消息日志中的一条消息。"""

    id: str = Field(..., min_length=1, description="消息唯一标识（房间内唯一）")
    user: str = Field(default=ANONYMOUS_USER, description="作者显示名")
    role: MessageRole = Field(..., description="消息角色")
    content: str = Field(..., description="消息文本")


class _MessageEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    user: str = ANONYMOUS_USER
    role: MessageRole
    content: str
    model: str | None = Field(default=None, description="指定的推理模型 ID")
    platform: str | None = Field(default=None, description="客户端平台标识，原样透传")
    use_mcp: bool = Field(default=False, alias="useMCP", description="是否启用文档检索")

    def to_message(self) -> ChatMessage:
        """提取事件中的消息本体。"""
        return ChatMessage(id=self.id, user=self.user, role=self.role, content=self.content)


class AddEvent(_MessageEvent):
    type: Literal["add"] = "add"


class UpdateEvent(_MessageEvent):
    type: Literal["update"] = "update"


class AllEvent(BaseModel):
    type: Literal["all"] = "all"
    messages: list[ChatMessage] = Field(default_factory=list)


class SessionLoadingEvent(BaseModel):
    type: Literal["session_loading"] = "session_loading"


class SessionReadyEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["session_ready"] = "session_ready"
    session_id: str = Field(..., alias="sessionId")


class SessionFailedEvent(BaseModel):
    type: Literal["session_failed"] = "session_failed"
    error: str


DomainEvent = Annotated[
    Union[
        AddEvent,
        UpdateEvent,
        AllEvent,
        SessionLoadingEvent,
        SessionReadyEvent,
        SessionFailedEvent,
    ],
    Field(discriminator="type"),
]

EVENT_TYPES: frozenset[str] = frozenset(
    {"add", "update", "all", "session_loading", "session_ready", "session_failed"},
)

_event_adapter: TypeAdapter = TypeAdapter(DomainEvent)


def parse_event(raw: str | bytes) -> BaseModel:
    """将一帧文本解析为领域事件。

    Args:
        raw: WebSocket 收到的原始文本。

    Returns:
        对应的事件模型实例。

    Raises:
        MalformedEvent: JSON 非法、标签未知或负载校验失败。
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedEvent(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedEvent("event must be a JSON object")

    tag = data.get("type")
    if tag not in EVENT_TYPES:
        raise MalformedEvent(f"unknown event type: {tag!r}", details={"type": tag})

    try:
        return _event_adapter.validate_python(data)
    except ValidationError as e:
        raise MalformedEvent(
            f"invalid {tag} event", details=e.errors(include_url=False),
        ) from e


def dump_event(event: BaseModel) -> str:
    """序列化事件为线上 JSON（使用 camelCase 别名，省略空字段）。"""
    return event.model_dump_json(by_alias=True, exclude_none=True)
