"""当前会话的乐观消息存储。

- 已确认列表：服务端返回的消息，加上本地插入的乐观用户消息、合成的错误消息。
- 进行中缓冲：流式增量拼出来的助手回复，单独渲染，不是 ChatMessage。

对账（replace_all）时整体替换已确认列表，乐观消息不做合并。
"""

from typing import Iterable, List, Tuple
from uuid import uuid4

from finac_chat.config.settings import settings
from finac_chat.domain.exceptions import ValidationError
from finac_chat.domain.models import ChatMessage


class OptimisticMessageStore:
    def __init__(self, provisional_prefix: str | None = None):
        self._prefix = provisional_prefix or settings.provisional_id_prefix
        self._messages: List[ChatMessage] = []
        self._in_progress = ""

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def in_progress(self) -> str:
        return self._in_progress

    @property
    def provisional(self) -> Tuple[ChatMessage, ...]:
        return tuple(m for m in self._messages if self.is_provisional(m))

    def is_provisional(self, message: ChatMessage) -> bool:
        return message.id.startswith(self._prefix)

    def provisional_id(self, kind: str) -> str:
        return f"{self._prefix}{kind}-{uuid4().hex}"

    def append_provisional(self, message: ChatMessage) -> None:
        """立即插入一条尚未被服务端确认的消息。"""

        if not self.is_provisional(message):
            raise ValidationError(
                code="NOT_PROVISIONAL",
                message=f"provisional message id must start with {self._prefix!r}: {message.id}",
            )
        self._insert(message)

    def append_local(self, message: ChatMessage) -> None:
        """插入一条本地合成的消息（如错误提示），它不参与乐观对账。"""

        self._insert(message)

    def append_delta(self, text: str) -> None:
        self._in_progress += text

    def clear_in_progress(self) -> None:
        self._in_progress = ""

    def replace_all(self, messages: Iterable[ChatMessage]) -> None:
        """用服务端列表整体替换，同时清空进行中缓冲与乐观消息。"""

        confirmed: List[ChatMessage] = []
        seen: set[str] = set()
        for m in messages:
            # 服务端重复 id 只保留第一条
            if m.id in seen:
                continue
            seen.add(m.id)
            confirmed.append(m)
        self._messages = confirmed
        self._in_progress = ""

    def clear(self) -> None:
        self._messages = []
        self._in_progress = ""

    def _insert(self, message: ChatMessage) -> None:
        if any(m.id == message.id for m in self._messages):
            raise ValidationError(code="DUPLICATE_MESSAGE_ID", message=message.id)
        self._messages.append(message)

    def __len__(self) -> int:
        return len(self._messages)
