"""会话与消息的数据模型。

本模块定义了客户端在内存中持有的标准数据结构：

- ChatMessage: 一条会话消息（USER / ASSISTANT）。
- ChatSummary: 会话列表中的一项（标题、时间、首条消息预览）。
- ChatSession: 当前激活会话，id 在服务端首次返回 chatId 前可以为空。

服务端 JSON 与这些模型之间的转换也集中在这里（from_payload）。
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, get_args

from finac_chat.domain.exceptions import ValidationError


# 与服务端 Prisma 枚举保持一致
Role = Literal["USER", "ASSISTANT"]
ResponseType = Literal["TEXT", "TABLE", "CHART"]

_ROLES = set(get_args(Role))
_RESPONSE_TYPES = set(get_args(ResponseType))


def parse_timestamp(raw: Any) -> datetime:
    """解析服务端的 ISO-8601 时间（允许 Z 后缀），统一返回带时区的 datetime。"""

    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, str) and raw:
        try:
            value = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as e:
            raise ValidationError(code="BAD_TIMESTAMP", message=str(e))
    else:
        raise ValidationError(code="BAD_TIMESTAMP", message=f"invalid timestamp: {raw!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_object(data: Any, code: str, what: str) -> None:
    if not isinstance(data, dict):
        raise ValidationError(code=code, message=f"expected a {what} object, got {type(data).__name__}")


@dataclass
class ChatMessage:
    """一条会话消息。

    - id: 服务端 id；本地生成的乐观消息 / 错误消息使用带前缀的 id。
    - chat_id: 所属会话 id，新会话在拿到服务端 id 之前为空字符串。
    - response_type / metadata: 助手消息的结构化结果（表格、图表）。
    """

    id: str
    chat_id: str
    role: Role
    content: str
    response_type: Optional[ResponseType] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatMessage":
        _require_object(data, "BAD_MESSAGE", "message")
        role = data.get("role")
        if role not in _ROLES:
            raise ValidationError(code="BAD_MESSAGE", message=f"unknown role: {role!r}")
        response_type = data.get("responseType")
        if response_type is not None and response_type not in _RESPONSE_TYPES:
            raise ValidationError(
                code="BAD_MESSAGE",
                message=f"unknown responseType: {response_type!r}",
            )
        try:
            message_id = data["id"]
        except KeyError:
            raise ValidationError(code="BAD_MESSAGE", message="message without id")
        return cls(
            id=str(message_id),
            chat_id=str(data.get("chatId") or ""),
            role=role,
            content=data.get("content") or "",
            response_type=response_type,
            metadata=data.get("metadata"),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class ChatSummary:
    """会话列表项，对应 GET /api/ai/chats 的一条记录。"""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime
    preview: List[ChatMessage] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatSummary":
        _require_object(data, "BAD_CHAT", "chat")
        try:
            chat_id = data["id"]
        except KeyError:
            raise ValidationError(code="BAD_CHAT", message="chat without id")
        return cls(
            id=str(chat_id),
            title=data.get("title") or "",
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            preview=_messages_from_payload(data.get("messages")),
        )


@dataclass
class ChatSession:
    """一个会话及其完整消息列表，对应 GET /api/ai/chat/{chatId}。

    新会话的 id 由服务端在流式响应中分配，客户端在此之前只持有 None。
    """

    id: str
    title: str = ""
    messages: List[ChatMessage] = field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "ChatSession":
        _require_object(data, "BAD_CHAT", "chat")
        try:
            chat_id = data["id"]
        except KeyError:
            raise ValidationError(code="BAD_CHAT", message="chat without id")
        return cls(
            id=str(chat_id),
            title=data.get("title") or "",
            messages=_messages_from_payload(data.get("messages")),
        )


def _messages_from_payload(raw: Any) -> List[ChatMessage]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError(code="BAD_MESSAGE", message=f"messages must be a list, got {type(raw).__name__}")
    return [ChatMessage.from_payload(m) for m in raw]
