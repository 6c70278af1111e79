"""
cfhelper.services.inference_responder
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

普通推理路径：把房间完整对话历史交给推理后端。

本模块不捕获后端异常，异常由 ``ChatRoom`` 的派发边界统一处理。
"""
from __future__ import annotations

from cfhelper.core.logging import get_logger
from cfhelper.llm.router import InferenceBackend
from cfhelper.prompts.assistant import DEFAULT_REPLY

logger = get_logger(__name__)


class InferenceResponder:
    """基于对话历史的直接推理。"""

    def __init__(self, backend: InferenceBackend) -> None:
        self.backend = backend

    async def respond(self, history: list[dict[str, str]], model: str) -> str:
        """调用推理后端并返回回复文本。

        Args:
            history: ``MessageLog.history_as_conversation()`` 的结果，不做截断。
            model: 推理模型 ID。

        Returns:
            后端回复；后端未返回可用文本时返回固定兜底语。
        """
        logger.info("推理调用 | model=%s | 历史 %d 条", model, len(history))
        result = await self.backend.run(model, messages=history)
        text = result.get("response") if isinstance(result, dict) else None
        if isinstance(text, str) and text.strip():
            return text
        logger.warning("推理后端未返回可用文本 | model=%s", model)
        return DEFAULT_REPLY
