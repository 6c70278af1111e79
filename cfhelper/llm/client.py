"""
cfhelper.llm.client
~~~~~~~~~~~~~~~~~~~

外部客户端工厂：全局共享的客户端创建入口。

所有需要 HTTP 客户端或 Gemini Client 的模块统一从此处获取，
避免连接参数分散在各模块中。
"""
from __future__ import annotations

import httpx
from google import genai

from cfhelper.core.config import settings


def create_http_client(timeout: float | None = None) -> httpx.AsyncClient:
    """创建共享的异步 HTTP 客户端。

    Args:
        timeout: 默认超时秒数，默认读取 ``settings.INFERENCE_TIMEOUT_SECONDS``。

    Returns:
        ``httpx.AsyncClient`` 实例，需要在应用关闭时 ``aclose()``。
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout or settings.INFERENCE_TIMEOUT_SECONDS),
    )


def create_gemini_client() -> genai.Client:
    """创建 Gemini API 客户端实例。

    Returns:
        已认证的 ``genai.Client``。
    """
    return genai.Client(api_key=settings.GEMINI_API_KEY)
