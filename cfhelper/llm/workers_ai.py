"""
cfhelper.llm.workers_ai
~~~~~~~~~~~~~~~~~~~~~~~

Cloudflare Workers AI 推理后端：通过 REST API 调用 ``@cf/...`` 模型。

只负责 HTTP 调用与响应解包，不包含任何对话历史或 Prompt 组装逻辑。
"""
from __future__ import annotations

from typing import Any

import httpx

from cfhelper.core.config import settings
from cfhelper.core.errors import BackendError
from cfhelper.core.logging import get_logger

logger = get_logger(__name__)


class WorkersAIProvider:
    """Workers AI ``ai/run`` 接口封装。

    Attributes:
        account_id: Cloudflare 账户 ID。
        base_url: REST API 根地址。
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        account_id: str | None = None,
        api_token: str | None = None,
        base_url: str | None = None,
    ) -> None:
        """初始化推理后端。

        Args:
            http: 共享的 ``httpx.AsyncClient``（测试时可注入 MockTransport）。
            account_id: 默认读取 ``settings.CF_ACCOUNT_ID``。
            api_token: 默认读取 ``settings.CF_API_TOKEN``。
            base_url: 默认读取 ``settings.CF_API_BASE_URL``。
        """
        self._http = http
        self.account_id: str = account_id or settings.CF_ACCOUNT_ID
        self._api_token: str = api_token or settings.CF_API_TOKEN
        self.base_url: str = (base_url or settings.CF_API_BASE_URL).rstrip("/")

    def _url(self, model_id: str) -> str:
        return f"{self.base_url}/accounts/{self.account_id}/ai/run/{model_id}"

    async def run(
        self,
        model_id: str,
        messages: list[dict[str, str]] | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        """调用指定模型。

        支持两种调用约定：``messages`` 对话历史，或 ``prompt`` 单轮文本。

        Returns:
            ``{"response": str}`` 形式的结果。

        Raises:
            BackendError: 传输失败、HTTP 错误或 API 返回 ``success: false``。
        """
        payload: dict[str, Any] = {}
        if messages is not None:
            payload["messages"] = messages
        elif prompt is not None:
            payload["prompt"] = prompt
        else:
            raise ValueError("either messages or prompt is required")
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if temperature is not None:
            payload["temperature"] = temperature

        logger.debug("Workers AI 调用 | model=%s | keys=%s", model_id, sorted(payload))
        try:
            resp = await self._http.post(
                self._url(model_id),
                json=payload,
                headers={"Authorization": f"Bearer {self._api_token}"},
            )
        except httpx.HTTPError as e:
            raise BackendError(f"Workers AI request failed: {e}") from e

        if resp.status_code >= 400:
            raise BackendError(
                f"Workers AI returned HTTP {resp.status_code}",
                details=resp.text[:500],
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise BackendError("Workers AI returned a non-JSON body") from e

        if not body.get("success", True):
            raise BackendError("Workers AI call was not successful", details=body.get("errors"))

        result = body.get("result") or {}
        return {"response": result.get("response") or ""}
