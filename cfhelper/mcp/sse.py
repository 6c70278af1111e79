"""
cfhelper.mcp.sse
~~~~~~~~~~~~~~~~

Server-Sent Events 帧解析。

按行消费 ``text/event-stream``，空行作为帧边界：

- ``event: <type>`` 设置事件类型（缺省为 ``message``）
- ``data: <text>`` 追加一行数据，多行数据以 ``\\n`` 拼接
- ``id: <id>`` 设置事件 ID
- 以 ``:`` 开头的行是注释（常见于心跳），直接忽略
"""
from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass


@dataclass
class SSEEvent:
    """一个完整的 SSE 帧。"""

    event: str = "message"
    data: str = ""
    id: str | None = None


class SSEParser:
    """增量式 SSE 解析器，逐行喂入，遇到帧边界时产出事件。"""

    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None

    def feed_line(self, line: str) -> SSEEvent | None:
        """喂入一行（不含换行符）。

        Returns:
            当该行结束了一个帧时返回 ``SSEEvent``，否则返回 ``None``。
        """
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            self._id = value
        # retry 及未知字段忽略
        return None

    def _dispatch(self) -> SSEEvent | None:
        # 没有 data 的帧不派发
        if not self._data:
            self._event = None
            return None
        event = SSEEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._id,
        )
        self._event = None
        self._data = []
        return event


async def aiter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[SSEEvent]:
    """把异步行流转换为 SSE 事件流。流结束时未以空行收尾的残帧会被丢弃。"""
    parser = SSEParser()
    async for line in lines:
        event = parser.feed_line(line)
        if event is not None:
            yield event
