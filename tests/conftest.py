"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures：mock 掉所有外部调用（Workers AI、Gemini、文档检索 MCP），
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import asyncio
import json
import os
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.websockets import WebSocketState

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("CF_ACCOUNT_ID", "test-account")
os.environ.setdefault("CF_API_TOKEN", "test-fake-token")
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置


# ── WebSocket Mock ────────────────────────────────────────────────────

class FakeWebSocket:
    """模拟 Starlette ``WebSocket`` 的最小实现。

    ``push()`` 模拟客户端发来的文本帧，``disconnect()`` 模拟客户端断开；
    服务端发出的帧记录在 ``sent`` 中。
    """

    def __init__(self, fail_send: bool = False) -> None:
        self.sent: list[str] = []
        self.fail_send = fail_send
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self._incoming: asyncio.Queue[str | bytes | None] = asyncio.Queue()

    def open(self) -> FakeWebSocket:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        return self

    async def accept(self) -> None:
        self.open()

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket is broken")
        self.sent.append(data)

    async def receive(self) -> dict[str, Any]:
        item = await self._incoming.get()
        if item is None:
            self.client_state = WebSocketState.DISCONNECTED
            return {"type": "websocket.disconnect", "code": 1000}
        if isinstance(item, bytes):
            return {"type": "websocket.receive", "bytes": item}
        return {"type": "websocket.receive", "text": item}

    def push(self, frame: str | bytes | dict[str, Any]) -> None:
        """模拟客户端发来一帧；``bytes`` 作为二进制帧发送。"""
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._incoming.put_nowait(frame)

    def disconnect(self) -> None:
        self._incoming.put_nowait(None)

    @property
    def events(self) -> list[dict[str, Any]]:
        return [json.loads(frame) for frame in self.sent]

    async def wait_for_frames(self, count: int, timeout: float = 2.0) -> list[dict[str, Any]]:
        """等待直到至少收到 ``count`` 帧。"""

        async def _wait() -> None:
            while len(self.sent) < count:
                await asyncio.sleep(0.001)

        await asyncio.wait_for(_wait(), timeout=timeout)
        return self.events


@pytest.fixture()
def fake_backend() -> MagicMock:
    """推理后端 mock，默认返回固定回复。"""
    backend = MagicMock()
    backend.run = AsyncMock(return_value={"response": "Hello from the model"})
    return backend


@pytest.fixture()
def fake_search() -> MagicMock:
    """文档检索客户端 mock，默认返回一段足够长的文档。"""
    search = MagicMock()
    search.call_tool = AsyncMock(
        return_value={
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "content": [
                    {"type": "text", "text": "Workers KV is a global, low-latency key-value store."},
                ],
            },
        },
    )
    return search


def user_add(message_id: str, content: str, **extra: Any) -> dict[str, Any]:
    """构造一个用户 ``add`` 事件帧。"""
    frame = {
        "type": "add",
        "id": message_id,
        "user": "Alice",
        "role": "user",
        "content": content,
    }
    frame.update(extra)
    return frame
