"""对话控制器核心模块。

负责一轮对话（exchange）的完整生命周期：

IDLE → SENDING → STREAMING → RECONCILING → IDLE
IDLE → SENDING → FAILED → IDLE

- 发送前立即插入乐观用户消息；
- 读取流式响应，把增量与服务端分配的会话 id 应用到当前会话；
- 结束后并发重新加载会话消息与会话列表，整体替换本地乐观状态；
- 失败时合成一条助手错误消息。

切换会话 / 新建会话时不中断网络读取，只把正在进行的 exchange 从当前
上下文上摘下来（detach），之后它产生的任何输出都会被丢弃。
"""

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional
from uuid import uuid4

from finac_chat.client.base import ChatApi
from finac_chat.config.settings import check_error_template, settings
from finac_chat.domain.events import Completed, ContentDelta, SessionAssigned, StreamEvent
from finac_chat.domain.exceptions import BusinessError, NetworkError, StreamTimeoutError, ValidationError
from finac_chat.domain.models import ChatMessage, ChatSession, ChatSummary
from finac_chat.infrastructure.logging.logger import logger
from finac_chat.store.message_store import OptimisticMessageStore
from finac_chat.stream.decoder import FrameDecoder
from finac_chat.stream.interpreter import EventInterpreter


class ExchangeState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    RECONCILING = "reconciling"
    FAILED = "failed"


ExchangeStatus = Literal["completed", "failed", "abandoned"]


@dataclass
class Exchange:
    """一轮对话：一次发送直到完成或失败。"""

    id: str
    message: str
    # 发起时已知的会话 id，新会话为 None
    chat_id: Optional[str]
    assigned_chat_id: Optional[str] = None

    @property
    def effective_chat_id(self) -> Optional[str]:
        return self.assigned_chat_id or self.chat_id


@dataclass
class ExchangeResult:
    exchange_id: str
    chat_id: Optional[str]
    status: ExchangeStatus
    error: Optional[str] = None
    error_code: Optional[str] = None


@dataclass
class SessionContext:
    """控制器持有的当前会话上下文，渲染层只读。

    - chat_id: 当前激活会话 id，新会话在服务端分配前为 None。
    - store: 当前会话的消息与进行中缓冲。
    - chats: 侧边栏会话列表。
    - exchange_id: 挂在当前上下文上的进行中 exchange。
    """

    chat_id: Optional[str] = None
    store: OptimisticMessageStore = field(default_factory=OptimisticMessageStore)
    chats: List[ChatSummary] = field(default_factory=list)
    state: ExchangeState = ExchangeState.IDLE
    exchange_id: Optional[str] = None

    @property
    def can_send(self) -> bool:
        return self.state is ExchangeState.IDLE


Listener = Callable[[SessionContext], None]


class ReconciliationController:
    def __init__(
        self,
        api: ChatApi,
        chat_id: Optional[str] = None,
        chats: Optional[List[ChatSummary]] = None,
        stream_idle_timeout: Optional[float] = None,
        error_reply_template: Optional[str] = None,
    ):
        self._api = api
        self._ctx = SessionContext(chat_id=chat_id, chats=list(chats or []))
        self._idle_timeout = stream_idle_timeout or settings.stream_idle_timeout
        self._error_template = settings.error_reply_template
        if error_reply_template is not None:
            try:
                self._error_template = check_error_template(error_reply_template)
            except ValueError as e:
                raise ValidationError(code="BAD_TEMPLATE", message=str(e))
        self._listeners: List[Listener] = []
        # 每次发起对话或切换会话都加一，晚到的 load_chat 结果据此丢弃
        self._generation = 0

    # ------------------------------------------------------------------
    # 只读视图

    @property
    def context(self) -> SessionContext:
        return self._ctx

    @property
    def state(self) -> ExchangeState:
        return self._ctx.state

    @property
    def active_chat_id(self) -> Optional[str]:
        return self._ctx.chat_id

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._ctx.store.messages)

    @property
    def streaming_content(self) -> str:
        return self._ctx.store.in_progress

    @property
    def chats(self) -> List[ChatSummary]:
        return list(self._ctx.chats)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """注册渲染回调，每次上下文变化后调用；返回取消注册的函数。"""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # 发送

    async def send(self, message: str) -> Optional[ExchangeResult]:
        """发送一条消息并等待本轮结束。

        空白消息直接忽略（返回 None）；非 IDLE 状态下发送会被拒绝。

        Raises:
            ValidationError: code="EXCHANGE_IN_FLIGHT"，已有进行中的对话。
        """

        if not message or not message.strip():
            return None
        if self._ctx.state is not ExchangeState.IDLE:
            raise ValidationError(
                code="EXCHANGE_IN_FLIGHT",
                message="a message is already being sent for this chat",
                chat_id=self._ctx.chat_id,
            )

        exchange = Exchange(id=f"ex-{uuid4().hex}", message=message, chat_id=self._ctx.chat_id)
        log_ctx: Dict[str, Any] = {"exchange_id": exchange.id, "chat_id": exchange.chat_id}

        self._ctx.exchange_id = exchange.id
        self._ctx.state = ExchangeState.SENDING
        self._generation += 1
        self._ctx.store.clear_in_progress()
        self._ctx.store.append_provisional(
            ChatMessage(
                id=self._ctx.store.provisional_id("user"),
                chat_id=exchange.chat_id or "",
                role="USER",
                content=message,
            )
        )
        self._log(logging.INFO, "Exchange started", log_ctx, new_chat=exchange.chat_id is None)
        self._notify()

        try:
            try:
                await self._consume(exchange, log_ctx)
            except BusinessError as e:
                return self._fail(exchange, e, log_ctx)
            except Exception as e:
                # 读取过程中出现的任何异常都只结束本轮，不能让发送入口一直处于禁用状态
                logger.exception("Unexpected error while streaming", extra={"extra": log_ctx})
                return self._fail(
                    exchange,
                    NetworkError(code="STREAM_ERROR", message=str(e) or type(e).__name__),
                    log_ctx,
                )
            await self._reconcile(exchange, log_ctx)
            return self._result(exchange, "completed")
        finally:
            self._release(exchange)

    async def _events(self, exchange: Exchange) -> AsyncIterator[StreamEvent]:
        """读取流式响应并产出事件，作为读取任务与会话状态之间的通道。

        流自然结束而没有 done 时补一个 Completed(implicit=True)。
        """

        decoder = FrameDecoder()
        interpreter = EventInterpreter(session_id=exchange.chat_id)
        async with aclosing(self._api.stream_chat(exchange.chat_id, exchange.message)) as chunks:
            first = True
            while True:
                try:
                    async with asyncio.timeout(self._idle_timeout):
                        chunk = await anext(chunks)
                except StopAsyncIteration:
                    break
                except TimeoutError:
                    raise StreamTimeoutError(
                        code="STREAM_TIMEOUT",
                        message=f"no response data for {self._idle_timeout:g} seconds",
                    )
                if first:
                    first = False
                    self._set_state(exchange, ExchangeState.STREAMING)
                for payload in decoder.feed(chunk):
                    for event in interpreter.interpret(payload):
                        yield event
                        if isinstance(event, Completed):
                            return
        if decoder.pending.strip():
            logger.info(
                "Dropped incomplete trailing frame",
                extra={"extra": {"exchange_id": exchange.id, "size": len(decoder.pending)}},
            )
        yield Completed(implicit=True)

    async def _consume(self, exchange: Exchange, log_ctx: Dict[str, Any]) -> None:
        async with aclosing(self._events(exchange)) as events:
            async for event in events:
                if isinstance(event, SessionAssigned):
                    exchange.assigned_chat_id = event.session_id
                    log_ctx["chat_id"] = event.session_id
                if not self._attached(exchange):
                    # 已被切走：继续读完，但不再触碰当前会话
                    continue
                if isinstance(event, SessionAssigned):
                    if self._ctx.chat_id is None:
                        self._ctx.chat_id = event.session_id
                        self._log(logging.INFO, "Session assigned", log_ctx)
                        self._notify()
                elif isinstance(event, ContentDelta):
                    self._ctx.store.append_delta(event.text)
                    self._notify()
                elif isinstance(event, Completed):
                    self._log(
                        logging.INFO,
                        "Stream completed",
                        log_ctx,
                        implicit=event.implicit,
                        server_error=event.error,
                    )

    async def _reconcile(self, exchange: Exchange, log_ctx: Dict[str, Any]) -> None:
        """流结束后的对账：并发重新加载会话消息与会话列表。"""

        if self._attached(exchange):
            self._ctx.state = ExchangeState.RECONCILING
            self._ctx.store.clear_in_progress()
            self._notify()

        chat_id = exchange.effective_chat_id
        reload_messages = chat_id is not None and self._attached(exchange)
        if chat_id is None:
            self._log(logging.WARNING, "No chat id after stream, skipping message reload", log_ctx)

        calls = [self._api.list_chats()]
        if reload_messages:
            calls.append(self._api.get_chat(chat_id))
        results = await asyncio.gather(*calls, return_exceptions=True)

        chats_result = results[0]
        if isinstance(chats_result, BaseException):
            self._log(logging.WARNING, "Chat list reload failed", log_ctx, error=str(chats_result))
        else:
            self._ctx.chats = list(chats_result)

        if reload_messages:
            session_result = results[1]
            if isinstance(session_result, BaseException):
                self._log(logging.WARNING, "Chat reload failed", log_ctx, error=str(session_result))
            elif self._attached(exchange):
                self._ctx.store.replace_all(session_result.messages)
        self._notify()

    def _fail(self, exchange: Exchange, error: BusinessError, log_ctx: Dict[str, Any]) -> ExchangeResult:
        self._log(logging.ERROR, "Exchange failed", log_ctx, **error.to_dict())
        if self._attached(exchange):
            self._ctx.state = ExchangeState.FAILED
            self._ctx.store.clear_in_progress()
            self._ctx.store.append_local(
                ChatMessage(
                    id=f"error-{uuid4().hex}",
                    chat_id=exchange.effective_chat_id or "",
                    role="ASSISTANT",
                    content=self._error_template.format(error=error.message),
                    response_type="TEXT",
                )
            )
            self._notify()
        return self._result(exchange, "failed", error)

    def _result(
        self, exchange: Exchange, status: ExchangeStatus, error: Optional[BusinessError] = None
    ) -> ExchangeResult:
        if not self._attached(exchange):
            status = "abandoned"
        return ExchangeResult(
            exchange_id=exchange.id,
            chat_id=exchange.effective_chat_id,
            status=status,
            error=error.message if error else None,
            error_code=error.code if error else None,
        )

    def _release(self, exchange: Exchange) -> None:
        if self._attached(exchange):
            self._ctx.exchange_id = None
            self._ctx.state = ExchangeState.IDLE
            self._notify()

    # ------------------------------------------------------------------
    # 会话切换与管理

    async def select_chat(self, chat_id: str) -> bool:
        """切换到已有会话并加载其消息。"""

        self._detach()
        self._ctx.chat_id = chat_id
        self._ctx.store.clear()
        self._notify()
        return await self.load_chat(chat_id)

    def new_chat(self) -> None:
        """回到“无会话”状态，首条消息发送时由服务端创建会话。"""

        self._detach()
        self._ctx.chat_id = None
        self._ctx.store.clear()
        self._notify()

    async def load_chat(self, chat_id: str) -> bool:
        """加载会话消息；失败只记日志，保留当前状态。

        加载期间如果切换了会话，或者当前会话上已经发起了新的一轮对话，
        返回的结果直接丢弃：新一轮结束后的对账会重新加载。
        """

        generation = self._generation
        try:
            session: ChatSession = await self._api.get_chat(chat_id)
        except BusinessError as e:
            self._log(logging.WARNING, "Chat load failed", {"chat_id": chat_id}, **e.to_dict())
            return False
        stale = self._generation != generation or self._ctx.chat_id != chat_id
        if stale or self._ctx.exchange_id is not None:
            self._log(
                logging.INFO,
                "Discarded stale chat load",
                {"chat_id": chat_id, "active_chat_id": self._ctx.chat_id},
                exchange_id=self._ctx.exchange_id,
            )
            return False
        self._ctx.store.replace_all(session.messages)
        self._notify()
        return True

    async def refresh_chats(self) -> List[ChatSummary]:
        self._ctx.chats = list(await self._api.list_chats())
        self._notify()
        return self.chats

    async def delete_chat(self, chat_id: str) -> None:
        await self._api.delete_chat(chat_id)
        self._ctx.chats = [c for c in self._ctx.chats if c.id != chat_id]
        if self._ctx.chat_id == chat_id:
            self._detach()
            self._ctx.chat_id = None
            self._ctx.store.clear()
        self._log(logging.INFO, "Chat deleted", {"chat_id": chat_id})
        self._notify()

    async def rename_chat(self, chat_id: str, title: str) -> None:
        await self._api.rename_chat(chat_id, title)
        self._ctx.chats = [replace(c, title=title) if c.id == chat_id else c for c in self._ctx.chats]
        self._notify()

    # ------------------------------------------------------------------

    def _attached(self, exchange: Exchange) -> bool:
        return self._ctx.exchange_id == exchange.id

    def _set_state(self, exchange: Exchange, state: ExchangeState) -> None:
        if self._attached(exchange):
            self._ctx.state = state
            self._notify()

    def _detach(self) -> None:
        self._generation += 1
        if self._ctx.exchange_id is not None:
            self._log(
                logging.INFO,
                "Detached in-flight exchange",
                {"exchange_id": self._ctx.exchange_id, "chat_id": self._ctx.chat_id},
                state=self._ctx.state.value,
            )
        self._ctx.exchange_id = None
        self._ctx.state = ExchangeState.IDLE
        self._ctx.store.clear_in_progress()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._ctx)

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
