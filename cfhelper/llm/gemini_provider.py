"""
cfhelper.llm.gemini_provider
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Google Gemini 推理后端：以与 Workers AI 相同的 ``run()`` 约定暴露 Gemini 模型。

对话历史中的 ``system`` 消息合并为 ``system_instruction``，
``assistant`` 角色映射为 Gemini 的 ``model`` 角色。
"""
from __future__ import annotations

from typing import Any

from google import genai
from google.genai import types

from cfhelper.core.errors import BackendError
from cfhelper.core.logging import get_logger
from cfhelper.llm.client import create_gemini_client

logger = get_logger(__name__)

_ROLE_MAP: dict[str, str] = {"user": "user", "assistant": "model"}


def _to_contents(
    messages: list[dict[str, str]],
) -> tuple[list[types.Content], str | None]:
    """将 ``[{role, content}]`` 转换为 Gemini Content 列表与系统指令。"""
    contents: list[types.Content] = []
    system_parts: list[str] = []
    for msg in messages:
        role = msg.get("role")
        if role == "system":
            system_parts.append(msg["content"])
            continue
        if role not in _ROLE_MAP:
            continue
        contents.append(
            types.Content(
                role=_ROLE_MAP[role],
                parts=[types.Part.from_text(text=msg["content"])],
            ),
        )
    system_instruction = "\n\n".join(system_parts) if system_parts else None
    return contents, system_instruction


class GeminiProvider:
    """Gemini 模型调用封装。"""

    def __init__(self, client: genai.Client | None = None) -> None:
        """初始化 Gemini 后端。

        Args:
            client: 可选的 ``genai.Client`` 实例（用于测试注入 mock）。
        """
        self._client: genai.Client = client or create_gemini_client()

    async def run(
        self,
        model_id: str,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """调用 Gemini 模型。

        Returns:
            ``{"response": str}`` 形式的结果。

        Raises:
            BackendError: Gemini SDK 调用失败。
        """
        if messages is not None:
            contents, system_instruction = _to_contents(messages)
        elif prompt is not None:
            contents, system_instruction = _to_contents([{"role": "user", "content": prompt}])
        else:
            raise ValueError("either messages or prompt is required")

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=model_id, contents=contents, config=config,
            )
        except Exception as e:
            logger.error("Gemini 调用异常: %s", e, exc_info=True)
            raise BackendError(f"Gemini request failed: {e}") from e
        return {"response": response.text or ""}
