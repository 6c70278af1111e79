"""
cfhelper.mcp.docs_search
~~~~~~~~~~~~~~~~~~~~~~~~

文档检索 MCP 客户端：基于 SSE 推送通道的两阶段 JSON-RPC 调用。

一次 ``tools/call`` 的完整流程:
  1. 后台任务打开 ``GET /sse?sessionId=...`` 推送通道并开始读帧
  2. 短暂等待后 ``POST /sse/message?sessionId=...`` 提交请求，要求 HTTP 202
  3. 推送通道上第一条可解析的 ``message`` 帧即为调用结果，随后关闭通道
  4. 步骤 1-3 整体受 ``timeout`` 约束，超时即取消，不重试
"""
from __future__ import annotations

import asyncio
import json
import time
from typing import Any

import httpx

from cfhelper.core.config import settings
from cfhelper.core.errors import BackendError, RetrievalTimeout
from cfhelper.core.logging import get_logger
from cfhelper.mcp.sse import aiter_sse_events

logger = get_logger(__name__)


def extract_result_text(payload: dict[str, Any]) -> str:
    """从 JSON-RPC 响应中取出 ``result.content[0].text``。

    Raises:
        BackendError: 响应携带 ``error`` 成员或工具结果标记为 ``isError``。
    """
    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise BackendError(f"MCP tool call failed: {message}", details=error)

    result = payload.get("result") or {}
    content = result.get("content") or []
    text = ""
    if content and isinstance(content[0], dict):
        text = content[0].get("text") or ""
    if result.get("isError"):
        raise BackendError(f"MCP tool reported an error: {text[:200]}")
    return text


class DocsSearchClient:
    """文档检索 MCP 服务客户端。

    Attributes:
        base_url: MCP 服务根地址。
        timeout: 推送通道等待结果的总超时（秒）。
        submit_delay: 打开推送通道后到提交请求之间的等待（秒）。
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str | None = None,
        timeout: float | None = None,
        submit_delay: float | None = None,
    ) -> None:
        self._http = http
        self.base_url: str = (base_url or settings.DOCS_MCP_BASE_URL).rstrip("/")
        self.timeout: float = settings.MCP_TIMEOUT_SECONDS if timeout is None else timeout
        self.submit_delay: float = (
            settings.MCP_SUBMIT_DELAY_SECONDS if submit_delay is None else submit_delay
        )
        self._last_request_id: int = 0

    def _next_request_id(self) -> int:
        """毫秒时间戳作为请求 ID，同一毫秒内递增保证单调。"""
        now = int(time.time() * 1000)
        self._last_request_id = max(now, self._last_request_id + 1)
        return self._last_request_id

    def build_request(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        return {
            "jsonrpc": "2.0",
            "id": self._next_request_id(),
            "method": "tools/call",
            "params": {"name": name, "arguments": arguments},
        }

    async def call_tool(
        self, session_id: str, name: str, arguments: dict[str, Any],
    ) -> dict[str, Any]:
        """调用一次 MCP 工具并等待推送通道返回结果。

        Args:
            session_id: 检索会话 token。
            name: 工具名称。
            arguments: 工具参数。

        Returns:
            JSON-RPC 响应对象。

        Raises:
            RetrievalTimeout: 超时仍未收到结果。
            BackendError: 通道建立失败、提交未被接受或通道提前关闭。
        """
        request = self.build_request(name, arguments)
        logger.info("MCP 调用 | tool=%s | id=%s", name, request["id"])
        try:
            return await asyncio.wait_for(
                self._exchange(session_id, request), timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("MCP 等待结果超时 | id=%s | timeout=%ss", request["id"], self.timeout)
            raise RetrievalTimeout(
                f"no result within {self.timeout:g}s", details={"id": request["id"]},
            ) from e

    async def _exchange(self, session_id: str, request: dict[str, Any]) -> dict[str, Any]:
        reader = asyncio.create_task(self._read_result(session_id, request["id"]))
        try:
            if self.submit_delay > 0:
                await asyncio.sleep(self.submit_delay)
            await self._submit(session_id, request)
            return await reader
        finally:
            # 任意退出路径都要释放推送通道
            if not reader.done():
                reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)

    async def _submit(self, session_id: str, request: dict[str, Any]) -> None:
        try:
            resp = await self._http.post(
                f"{self.base_url}/sse/message",
                params={"sessionId": session_id},
                json=request,
            )
        except httpx.HTTPError as e:
            raise BackendError(f"MCP request failed: {e}") from e

        if resp.status_code != 202:
            raise BackendError(
                f"MCP request failed: HTTP {resp.status_code}", details=resp.text[:500],
            )
        logger.debug("MCP 请求已受理，等待推送结果 | id=%s", request["id"])

    async def _read_result(self, session_id: str, request_id: int) -> dict[str, Any]:
        try:
            async with self._http.stream(
                "GET",
                f"{self.base_url}/sse",
                params={"sessionId": session_id},
                headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            ) as resp:
                if resp.status_code >= 400:
                    body = (await resp.aread()).decode("utf-8", errors="replace")
                    raise BackendError(
                        f"SSE connection failed: HTTP {resp.status_code}", details=body[:500],
                    )

                async for event in aiter_sse_events(resp.aiter_lines()):
                    if event.event != "message":
                        logger.debug("忽略 SSE 事件 | event=%s", event.event)
                        continue
                    try:
                        payload = json.loads(event.data)
                    except ValueError:
                        logger.warning("SSE 数据无法解析: %s", event.data[:120])
                        continue
                    if not isinstance(payload, dict):
                        continue
                    if "id" in payload and str(payload["id"]) != str(request_id):
                        logger.debug("忽略其他请求的响应 | id=%s", payload["id"])
                        continue
                    logger.info("MCP 结果已通过 SSE 收到 | id=%s", request_id)
                    return payload
        except httpx.HTTPError as e:
            raise BackendError(f"SSE stream error: {e}") from e

        raise BackendError("SSE stream closed before a result arrived")
