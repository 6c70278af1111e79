"""
cfhelper.services.retrieval_responder
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

文档检索增强回复：先通过 MCP 检索文档，再让推理后端基于检索结果作答。

与 ``InferenceResponder`` 不同，本模块吞掉链路内的所有异常，
转换为面向用户的说明文字，调用方永远拿到一段可展示的文本。
"""
from __future__ import annotations

from collections.abc import Awaitable, Callable

from cfhelper.core.config import settings
from cfhelper.core.errors import EmptyRetrieval, SessionUnavailable
from cfhelper.core.logging import get_logger
from cfhelper.llm.router import InferenceBackend
from cfhelper.mcp.docs_search import DocsSearchClient, extract_result_text
from cfhelper.prompts.assistant import (
    DOCS_UNPROCESSED_REPLY,
    build_docs_messages,
    build_retrieval_error_reply,
)

logger = get_logger(__name__)

# 返回当前会话 token 的协程（必要时触发会话初始化），拿不到时返回 None
SessionProvider = Callable[[], Awaitable["str | None"]]


class RetrievalResponder:
    """检索增强回复器。

    Attributes:
        search: 文档检索 MCP 客户端。
        backend: 用于合成最终回答的推理后端。
        tool_name: 调用的 MCP 工具名。
        min_result_length: 检索文本的最小可用长度。
        max_context_chars: 注入系统提示的检索文本上限。
    """

    def __init__(
        self,
        search: DocsSearchClient,
        backend: InferenceBackend,
        tool_name: str | None = None,
        min_result_length: int | None = None,
        max_context_chars: int | None = None,
    ) -> None:
        self.search = search
        self.backend = backend
        self.tool_name: str = tool_name or settings.DOCS_SEARCH_TOOL
        self.min_result_length: int = (
            settings.MCP_MIN_RESULT_LENGTH if min_result_length is None else min_result_length
        )
        self.max_context_chars: int = max_context_chars or settings.MCP_MAX_CONTEXT_CHARS

    async def respond(self, query: str, model: str, ensure_session: SessionProvider) -> str:
        """检索文档并合成回答，任何失败都转换为说明文字。"""
        try:
            return await self._respond(query, model, ensure_session)
        except Exception as e:
            logger.error("文档检索链路失败: %s", e, exc_info=True)
            return build_retrieval_error_reply(e)

    async def _respond(self, query: str, model: str, ensure_session: SessionProvider) -> str:
        session_id = await ensure_session()
        if not session_id:
            raise SessionUnavailable("Could not establish a documentation search session")

        payload = await self.search.call_tool(session_id, self.tool_name, {"query": query})
        documentation = extract_result_text(payload)
        if len(documentation) < self.min_result_length:
            raise EmptyRetrieval(
                "Documentation search returned empty results",
                details={"length": len(documentation)},
            )
        logger.info("检索命中 | 长度=%d", len(documentation))

        messages = build_docs_messages(query, documentation[: self.max_context_chars])
        result = await self.backend.run(model, messages=messages)
        text = result.get("response") if isinstance(result, dict) else None
        if isinstance(text, str) and text.strip():
            return text
        return DOCS_UNPROCESSED_REPLY
