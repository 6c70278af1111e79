"""
cfhelper.main
~~~~~~~~~~~~~

FastAPI 应用入口：注册路由、挂载中间件、定义生命周期。
"""
from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cfhelper.api import chat_ws, rooms
from cfhelper.core.config import settings
from cfhelper.core.logging import get_logger, setup_logging
from cfhelper.llm.client import create_http_client
from cfhelper.llm.gemini_provider import GeminiProvider
from cfhelper.llm.router import InferenceRouter
from cfhelper.llm.workers_ai import WorkersAIProvider
from cfhelper.mcp.docs_search import DocsSearchClient
from cfhelper.schemas.api_response import ApiResponse
from cfhelper.services.chat_room import ChatRoom
from cfhelper.services.inference_responder import InferenceResponder
from cfhelper.services.retrieval_responder import RetrievalResponder
from cfhelper.services.room_manager import RoomManager

# 初始化日志系统（必须在其他模块之前）
setup_logging()
logger = get_logger(__name__)


def build_room_manager(
    backend: InferenceRouter, search: DocsSearchClient,
) -> RoomManager:
    """组装房间管理器，所有房间共享同一组后端客户端。"""
    inference = InferenceResponder(backend)
    retrieval = RetrievalResponder(search, backend)

    def room_factory(room_id: str) -> ChatRoom:
        return ChatRoom(room_id, inference=inference, retrieval=retrieval)

    return RoomManager(room_factory)


# ── 生命周期 ──────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期钩子，仅在 worker 启动/关闭时各执行一次。"""
    # ── 启动 ──
    http = create_http_client()
    backend = InferenceRouter(
        default=WorkersAIProvider(http),
        gemini=GeminiProvider() if settings.gemini_enabled else None,
    )
    search = DocsSearchClient(http)
    app.state.http_client = http
    app.state.room_manager = build_room_manager(backend, search)
    logger.info(
        "🚀 应用已启动 | env=%s | debug=%s | log_level=%s | gemini=%s",
        settings.ENVIRONMENT,
        settings.debug,
        settings.effective_log_level,
        settings.gemini_enabled,
    )
    yield
    # ── 关闭 ──
    app.state.room_manager.close()
    await http.aclose()
    logger.info("👋 应用已关闭")


# ── 创建 FastAPI 实例 ─────────────────────────────────────────────────

app: FastAPI = FastAPI(
    title=settings.PROJECT_NAME,
    description="实时多人聊天室 + 文档检索增强助手",
    version=settings.VERSION,
    debug=settings.debug,
    lifespan=lifespan,
)

if settings.allow_cors_all_origins:
    # dev / test 环境：允许所有来源，方便本地调试
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

# ── 路由挂载 ──────────────────────────────────────────────────────────
app.include_router(rooms.router, prefix="/cfhelper/api", tags=["Rooms"])
app.include_router(chat_ws.router, tags=["WebSocket Chat"])


# ── 全局异常处理器 ────────────────────────────────────────────────────

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """捕获所有未处理异常，返回统一的 ApiResponse.fail() 格式。"""
    logger.error("未捕获异常: %s %s -> %s", request.method, request.url, exc, exc_info=True)
    # 非 prod 环境返回详细错误信息，prod 环境隐藏内部细节
    detail = str(exc) if not settings.is_prod else "Internal server error"
    return ApiResponse.fail_response(detail, 500)


@app.get("/health", tags=["System"])
async def health_check() -> JSONResponse:
    """验证服务是否正常运行。"""
    return JSONResponse(
        content={
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "debug": settings.debug,
            "log_level": settings.effective_log_level,
            "default_model": settings.DEFAULT_MODEL,
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cfhelper.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.reload,  # 仅 dev 环境开启热重载
        log_level=settings.effective_log_level.lower(),
    )
