"""
tests.test_docs_search
~~~~~~~~~~~~~~~~~~~~~~

DocsSearchClient（SSE + JSON-RPC 两阶段调用）测试。

使用 ``httpx.MockTransport`` 模拟 MCP 服务：SSE 通道的响应体是一个异步生成器，
在收到 POST 提交后才推送结果帧，与真实服务的时序一致。
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest

from cfhelper.core.errors import BackendError, RetrievalTimeout
from cfhelper.mcp.docs_search import DocsSearchClient, extract_result_text

BASE_URL = "http://docs.test"


def result_payload(request_id: Any, text: str) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "result": {"content": [{"type": "text", "text": text}]},
    }


class FakeDocsServer:
    """模拟文档检索 MCP 服务。

    Args:
        frames: 收到提交后要推送的 SSE 帧，可调用对象接收请求 ID 返回帧列表。
        post_status: POST 提交的响应状态码。
        sse_status: SSE 通道的响应状态码。
    """

    def __init__(
        self,
        frames: Any = None,
        post_status: int = 202,
        sse_status: int = 200,
        close_after_frames: bool = False,
    ) -> None:
        self.frames = frames
        self.post_status = post_status
        self.sse_status = sse_status
        self.close_after_frames = close_after_frames
        self.submitted: list[dict[str, Any]] = []
        self.post_params: dict[str, str] = {}
        self.sse_params: dict[str, str] = {}
        self.sse_headers: dict[str, str] = {}
        self._posted = asyncio.Event()

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST" and request.url.path == "/sse/message":
            self.post_params = dict(request.url.params)
            self.submitted.append(json.loads(request.content))
            self._posted.set()
            return httpx.Response(self.post_status, text="Accepted")
        if request.method == "GET" and request.url.path == "/sse":
            self.sse_params = dict(request.url.params)
            self.sse_headers = dict(request.headers)
            if self.sse_status >= 400:
                return httpx.Response(self.sse_status, text="upstream unavailable")
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=self._stream(),
            )
        return httpx.Response(404)

    async def _stream(self) -> AsyncIterator[bytes]:
        yield b"event: endpoint\ndata: /sse/message?sessionId=abc\n\n"
        await self._posted.wait()
        request_id = self.submitted[-1]["id"]
        frames = self.frames(request_id) if callable(self.frames) else (self.frames or [])
        for frame in frames:
            yield frame.encode()
        if not self.close_after_frames:
            # 保持连接直到客户端关闭
            await asyncio.Event().wait()


def make_client(server: FakeDocsServer, timeout: float = 2.0) -> tuple[DocsSearchClient, httpx.AsyncClient]:
    http = httpx.AsyncClient(transport=httpx.MockTransport(server.handler))
    client = DocsSearchClient(http, base_url=BASE_URL, timeout=timeout, submit_delay=0)
    return client, http


class TestCallTool:
    """测试完整的两阶段调用。"""

    @pytest.mark.asyncio
    async def test_result_delivered_over_sse(self) -> None:
        server = FakeDocsServer(
            frames=lambda rid: [f"data: {json.dumps(result_payload(rid, 'Workers KV docs'))}\n\n"],
        )
        client, http = make_client(server)
        async with http:
            payload = await client.call_tool("abc123", "search_cloudflare_documentation", {"query": "KV"})

        assert extract_result_text(payload) == "Workers KV docs"
        assert server.sse_params == {"sessionId": "abc123"}
        assert server.sse_headers["accept"] == "text/event-stream"
        assert server.post_params == {"sessionId": "abc123"}

        request = server.submitted[0]
        assert request["jsonrpc"] == "2.0"
        assert request["method"] == "tools/call"
        assert request["params"] == {
            "name": "search_cloudflare_documentation",
            "arguments": {"query": "KV"},
        }
        assert payload["id"] == request["id"]

    @pytest.mark.asyncio
    async def test_skips_unrelated_frames(self) -> None:
        """非 message 事件、无法解析的数据、其他请求的响应都被跳过。"""
        server = FakeDocsServer(
            frames=lambda rid: [
                ": keep-alive\n\n",
                "event: ping\ndata: {}\n\n",
                "data: not-json\n\n",
                f"data: {json.dumps(result_payload(rid + 1, 'someone else'))}\n\n",
                f"data: {json.dumps(result_payload(rid, 'mine'))}\n\n",
            ],
        )
        client, http = make_client(server)
        async with http:
            payload = await client.call_tool("s", "search", {"query": "q"})

        assert extract_result_text(payload) == "mine"

    @pytest.mark.asyncio
    async def test_submit_not_accepted(self) -> None:
        server = FakeDocsServer(post_status=400)
        client, http = make_client(server)
        async with http:
            with pytest.raises(BackendError, match="HTTP 400"):
                await client.call_tool("s", "search", {"query": "q"})

    @pytest.mark.asyncio
    async def test_sse_connection_refused(self) -> None:
        server = FakeDocsServer(sse_status=503)
        client, http = make_client(server)
        async with http:
            with pytest.raises(BackendError, match="SSE connection failed"):
                await client.call_tool("s", "search", {"query": "q"})

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """服务受理请求但一直不推送结果 → RetrievalTimeout。"""
        server = FakeDocsServer(frames=[])
        client, http = make_client(server, timeout=0.2)
        async with http:
            with pytest.raises(RetrievalTimeout):
                await client.call_tool("s", "search", {"query": "q"})

    @pytest.mark.asyncio
    async def test_stream_closed_without_result(self) -> None:
        server = FakeDocsServer(frames=["event: ping\ndata: {}\n\n"], close_after_frames=True)
        client, http = make_client(server)
        async with http:
            with pytest.raises(BackendError, match="closed before a result"):
                await client.call_tool("s", "search", {"query": "q"})


class TestRequestBuilding:
    """测试 JSON-RPC 请求构建。"""

    def test_request_ids_are_monotonic(self) -> None:
        client = DocsSearchClient(httpx.AsyncClient(), base_url=BASE_URL)
        ids = [client.build_request("t", {})["id"] for _ in range(5)]
        assert ids == sorted(set(ids))

    def test_base_url_trailing_slash(self) -> None:
        client = DocsSearchClient(httpx.AsyncClient(), base_url=BASE_URL + "/")
        assert client.base_url == BASE_URL


class TestExtractResultText:
    """测试 JSON-RPC 结果解包。"""

    def test_first_content_text(self) -> None:
        payload = {
            "result": {
                "content": [{"type": "text", "text": "first"}, {"type": "text", "text": "second"}],
            },
        }
        assert extract_result_text(payload) == "first"

    def test_empty_content(self) -> None:
        assert extract_result_text({"result": {"content": []}}) == ""
        assert extract_result_text({}) == ""

    def test_error_member(self) -> None:
        with pytest.raises(BackendError, match="unknown tool"):
            extract_result_text({"error": {"code": -32601, "message": "unknown tool"}})

    def test_is_error_flag(self) -> None:
        payload = {"result": {"isError": True, "content": [{"type": "text", "text": "quota"}]}}
        with pytest.raises(BackendError):
            extract_result_text(payload)
