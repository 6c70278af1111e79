"""
cfhelper.prompts.assistant
~~~~~~~~~~~~~~~~~~~~~~~~~~

助手署名、兜底回复与文档检索 Prompt 构建工具。

将面向用户的文案独立管理，方便在不修改调用链路的前提下调整措辞。
"""
from __future__ import annotations

# 普通推理路径（以及所有兜底回复）的署名
ASSISTANT_NAME: str = "SE Onboarding Assistant"
# 文档检索路径的署名
DOCS_ASSISTANT_NAME: str = "CF Helper"

DEFAULT_REPLY: str = "I'm here to help with your questions!"

DOCS_UNPROCESSED_REPLY: str = (
    "I found some relevant Cloudflare documentation but couldn't process it properly. "
    "Please try rephrasing your question."
)

DOCS_SYSTEM_PROMPT: str = """\
You are CF Helper, a Cloudflare expert assistant. Use the following Cloudflare \
documentation to answer the user's question comprehensively. Always cite specific \
sections when relevant.

Cloudflare Documentation:
{documentation}"""


def build_docs_messages(user_query: str, documentation: str) -> list[dict[str, str]]:
    """将检索到的文档与用户问题组装为推理后端的对话输入。

    Args:
        user_query: 用户原始问题。
        documentation: 已截断的检索文本。

    Returns:
        ``[system, user]`` 两条消息。
    """
    return [
        {"role": "system", "content": DOCS_SYSTEM_PROMPT.format(documentation=documentation)},
        {"role": "user", "content": user_query},
    ]


def build_fallback_reply(user_query: str) -> str:
    """推理调用失败时的确定性兜底回复，包含原始问题与不可用标记。"""
    return (
        f'Thanks for your question: "{user_query}". This is the SE Onboarding Lab '
        "chat assistant. (AI model temporarily unavailable)"
    )


def build_retrieval_error_reply(error: Exception) -> str:
    """文档检索链路失败时的说明文字，建议关闭文档检索重试。"""
    reason = getattr(error, "message", None) or str(error) or type(error).__name__
    return (
        f"I encountered an issue accessing Cloudflare documentation ({type(error).__name__}): "
        f"{reason}. Please try again or disable MCP search for a general response."
    )
