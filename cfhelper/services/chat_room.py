"""
cfhelper.services.chat_room
~~~~~~~~~~~~~~~~~~~~~~~~~~~

聊天室控制器：单个房间的状态机与连接协议。

每个 ``ChatRoom`` 独占自己的消息日志、连接登记表和检索会话 token。
所有状态修改都发生在事件循环的同步片段中，挂起点只有网络调用与 WebSocket 发送，
因此房间内部不需要额外加锁（会话初始化除外，它跨越挂起点）。

会话状态: ``UNINITIALIZED → LOADING → READY | FAILED``
"""
from __future__ import annotations

import asyncio
import secrets
import uuid
from collections.abc import Callable
from enum import Enum

from fastapi import WebSocket
from pydantic import BaseModel

from cfhelper.core.config import settings
from cfhelper.core.errors import MalformedEvent, SessionUnavailable
from cfhelper.core.logging import get_logger
from cfhelper.prompts.assistant import (
    ASSISTANT_NAME,
    DOCS_ASSISTANT_NAME,
    build_fallback_reply,
)
from cfhelper.schemas.events import (
    AddEvent,
    AllEvent,
    SessionFailedEvent,
    SessionLoadingEvent,
    SessionReadyEvent,
    UpdateEvent,
    dump_event,
    parse_event,
)
from cfhelper.schemas.rooms import RoomInfoData
from cfhelper.services.broadcaster import RoomBroadcaster
from cfhelper.services.connection_registry import ConnectionRegistry
from cfhelper.services.inference_responder import InferenceResponder
from cfhelper.services.message_log import MessageLog
from cfhelper.services.retrieval_responder import RetrievalResponder

logger = get_logger(__name__)


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def generate_session_token() -> str:
    """本地生成 16 位十六进制会话 token。"""
    return secrets.token_hex(8)


class ChatRoom:
    """一个聊天室实体。

    Attributes:
        room_id: 房间唯一标识。
        registry: 在线连接登记表。
        broadcaster: 房间广播器。
        log: 消息日志。
        session_token: 检索会话 token，未建立时为 ``None``。
        session_state: 会话状态机当前状态。
    """

    def __init__(
        self,
        room_id: str,
        inference: InferenceResponder,
        retrieval: RetrievalResponder,
        default_model: str | None = None,
        token_factory: Callable[[], str] = generate_session_token,
        queue_size: int | None = None,
    ) -> None:
        self.room_id = room_id
        self.inference = inference
        self.retrieval = retrieval
        self.default_model: str = default_model or settings.DEFAULT_MODEL
        self.queue_size: int = queue_size or settings.WS_QUEUE_SIZE

        self.registry = ConnectionRegistry()
        self.broadcaster = RoomBroadcaster(self.registry)
        self.log = MessageLog()

        self.session_token: str | None = None
        self.session_state: SessionState = SessionState.UNINITIALIZED
        self.session_error: str | None = None
        self._token_factory = token_factory
        self._session_lock = asyncio.Lock()

    # ── 房间信息 ──────────────────────────────────────────────────────

    @property
    def online_count(self) -> int:
        """当前在线连接数。"""
        return self.registry.online_count

    def info(self) -> RoomInfoData:
        """返回房间摘要信息。"""
        return RoomInfoData(
            room_id=self.room_id,
            online_count=self.online_count,
            message_count=len(self.log),
            session_state=self.session_state.value,
        )

    # ── 会话初始化 ────────────────────────────────────────────────────

    async def initialize_session(self) -> str | None:
        """执行一次会话初始化尝试。

        先广播 ``session_loading``，成功后广播 ``session_ready``，
        失败则广播 ``session_failed``。并发调用会排队，已有 token 时直接返回。

        Returns:
            会话 token，失败时返回 ``None``。
        """
        async with self._session_lock:
            if self.session_token is not None:
                return self.session_token

            self.session_state = SessionState.LOADING
            logger.info("会话初始化开始 | room=%s", self.room_id)
            await self.broadcaster.broadcast(SessionLoadingEvent())

            try:
                token = self._token_factory()
                if not token:
                    raise SessionUnavailable("session token generator returned nothing")
            except Exception as e:
                self.session_state = SessionState.FAILED
                self.session_error = str(e) or type(e).__name__
                logger.error("会话初始化失败 | room=%s | %s", self.room_id, e, exc_info=True)
                await self.broadcaster.broadcast(SessionFailedEvent(error=self.session_error))
                return None

            self.session_token = token
            self.session_state = SessionState.READY
            self.session_error = None
            logger.info("会话已就绪 | room=%s | session=%s", self.room_id, token)
            await self.broadcaster.broadcast(SessionReadyEvent(session_id=token))
            return token

    async def ensure_session(self) -> str | None:
        """返回现有 token，没有则触发一次初始化。"""
        if self.session_token is not None:
            return self.session_token
        return await self.initialize_session()

    def session_status(self) -> BaseModel:
        """当前会话状态对应的事件，发送给新加入的连接。

        只有 ``session_ready`` 与 ``session_loading`` 两种；``session_failed``
        仅由初始化尝试本身广播，每次尝试恰好一条。
        """
        if self.session_token is not None:
            return SessionReadyEvent(session_id=self.session_token)
        return SessionLoadingEvent()

    # ── 连接协议 ──────────────────────────────────────────────────────

    async def serve(self, websocket: WebSocket) -> None:
        """接管一个 WebSocket 连接直到其关闭。

        1. 接受并登记连接
        2. 单独发送 ``all`` 快照
        3. 会话未建立且无进行中的初始化时触发初始化（结果经广播送达本连接）
        4. 否则单独发送当前会话状态（ready 或 loading）
        5. 进入收发循环
        6. 连接关闭或出错时注销
        """
        await websocket.accept()
        token = self.registry.register(websocket)
        logger.info(
            "连接加入 | room=%s | token=%s | 在线: %d",
            self.room_id, token, self.online_count,
        )
        try:
            await websocket.send_text(dump_event(AllEvent(messages=self.log.snapshot())))
            if self.session_token is None and not self._session_lock.locked():
                # 本连接已经通过广播收到了这次尝试的结果，不再单独补发状态
                await self.initialize_session()
            else:
                await websocket.send_text(dump_event(self.session_status()))
            await self._pump(websocket)
        except Exception as e:
            logger.error("WebSocket 异常: %s | room=%s", e, self.room_id, exc_info=True)
        finally:
            self.registry.unregister(websocket)
            logger.info(
                "连接离开 | room=%s | token=%s | 在线: %d",
                self.room_id, token, self.online_count,
            )

    async def _pump(self, websocket: WebSocket) -> None:
        # 接收与处理分离：接收端按到达顺序入队，处理端顺序消费
        queue: asyncio.Queue[BaseModel | None] = asyncio.Queue(maxsize=self.queue_size)

        async def receive_loop() -> None:
            try:
                while True:
                    message = await websocket.receive()
                    if message["type"] == "websocket.disconnect":
                        break
                    try:
                        event = parse_event(self._frame_text(message))
                    except MalformedEvent as e:
                        logger.warning("丢弃无法解析的帧 | room=%s | %s", self.room_id, e.message)
                        continue
                    await queue.put(event)
            except Exception as e:
                logger.error("WebSocket 接收异常: %s | room=%s", e, self.room_id, exc_info=True)
            finally:
                await queue.put(None)

        async def process_loop() -> None:
            while True:
                event = await queue.get()
                if event is None:
                    break
                try:
                    await self.handle_event(websocket, event)
                except Exception as e:
                    logger.error("事件处理异常: %s | room=%s", e, self.room_id, exc_info=True)

        await asyncio.gather(receive_loop(), process_loop())

    @staticmethod
    def _frame_text(message: dict) -> str:
        """取出 ASGI 消息中的帧文本；二进制帧按 UTF-8 严格解码。

        Raises:
            MalformedEvent: 二进制帧不是合法的 UTF-8。
        """
        text = message.get("text")
        if text is not None:
            return text
        data = message.get("bytes")
        if data is None:
            return ""
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEvent(f"binary frame is not valid UTF-8: {e}") from e

    # ── 事件处理 ──────────────────────────────────────────────────────

    async def handle_event(self, sender: WebSocket, event: BaseModel) -> None:
        """处理一个入站事件。

        ``add`` / ``update`` 写入日志并广播给所有连接（含发送者，客户端不做本地回显）；
        只有 ``role == "user"`` 的 ``add`` 会触发助手回复。其余类型忽略。
        """
        if not isinstance(event, (AddEvent, UpdateEvent)):
            logger.debug("忽略入站事件 | type=%s", getattr(event, "type", "?"))
            return

        self.log.upsert(event.to_message())
        await self.broadcaster.broadcast(event)

        if isinstance(event, AddEvent) and event.role == "user":
            logger.info(
                "收到用户消息 | room=%s | from=%s | mcp=%s",
                self.room_id, self.registry.token_of(sender), event.use_mcp,
            )
            await self.reply_to(event)

    async def reply_to(self, event: AddEvent) -> AddEvent:
        """为用户消息生成助手回复，写入日志并广播。

        推理失败在此处转换为兜底回复，不会向连接层传播。
        """
        model = event.model or self.default_model
        try:
            if event.use_mcp:
                content = await self.retrieval.respond(event.content, model, self.ensure_session)
                author = DOCS_ASSISTANT_NAME
            else:
                content = await self.inference.respond(
                    self.log.history_as_conversation(), model,
                )
                author = ASSISTANT_NAME
        except Exception as e:
            logger.error("推理调用异常: %s | model=%s", e, model, exc_info=True)
            content = build_fallback_reply(event.content)
            author = ASSISTANT_NAME

        reply = AddEvent(
            id=str(uuid.uuid4()),
            user=author,
            role="assistant",
            content=content,
        )
        self.log.upsert(reply.to_message())
        await self.broadcaster.broadcast(reply)
        return reply
