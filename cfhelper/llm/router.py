"""
cfhelper.llm.router
~~~~~~~~~~~~~~~~~~~

推理后端路由：根据模型 ID 选择具体的推理后端。

- ``gemini*`` 且配置了 Gemini → ``GeminiProvider``
- 其余（``@cf/...``）→ ``WorkersAIProvider``
"""
from __future__ import annotations

from typing import Any, Protocol


class InferenceBackend(Protocol):
    """推理后端约定：``run(model_id, messages=...) -> {"response": str}``。"""

    async def run(
        self,
        model_id: str,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]: ...


class InferenceRouter:
    """按模型 ID 前缀分派到不同后端，对调用方表现为单一后端。"""

    def __init__(
        self,
        default: InferenceBackend,
        gemini: InferenceBackend | None = None,
    ) -> None:
        self.default = default
        self.gemini = gemini

    def backend_for(self, model_id: str) -> InferenceBackend:
        if self.gemini is not None and model_id.startswith("gemini"):
            return self.gemini
        return self.default

    async def run(
        self,
        model_id: str,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        return await self.backend_for(model_id).run(
            model_id,
            messages=messages,
            prompt=prompt,
            max_tokens=max_tokens,
            temperature=temperature,
        )
