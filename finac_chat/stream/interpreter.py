"""把单个 frame payload 解释为 StreamEvent。

payload 是一条 JSON 对象，字段全部可选：

- chatId: 服务端分配的会话 id（新会话时出现）。
- content: 本次增量文本。
- done: 为 true 时表示本轮结束。

解析失败只产生 Malformed 事件并记录日志，不会向调用方抛异常。
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic import ValidationError as PydanticValidationError

from finac_chat.domain.events import Completed, ContentDelta, Malformed, SessionAssigned, StreamEvent
from finac_chat.infrastructure.logging.logger import logger


class StreamFrame(BaseModel):
    """一帧 payload 的类型化视图，未知字段（table / chart 等）忽略。"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    chat_id: Optional[StrictStr] = Field(default=None, alias="chatId")
    content: Optional[StrictStr] = None
    done: Optional[StrictBool] = None
    error: Optional[StrictStr] = None


class EventInterpreter:
    """单轮对话内的事件解释器。

    session_id 为本轮已知的会话 id（已有会话时由控制器传入）。
    只有在尚未记录 id 时，带 chatId 的 frame 才会产生 SessionAssigned，
    因此同一轮内 id 最多被赋值一次。
    """

    def __init__(self, session_id: Optional[str] = None):
        self._session_id = session_id

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def interpret(self, payload: str) -> List[StreamEvent]:
        """按优先级返回一帧产生的事件：SessionAssigned，然后 Completed 或 ContentDelta。"""

        try:
            frame = StreamFrame.model_validate_json(payload)
        except PydanticValidationError as e:
            errors = e.errors()
            reason = errors[0]["msg"] if errors else str(e)
            logger.warning(
                "Malformed stream frame",
                extra={"extra": {"raw": payload[:200], "reason": reason}},
            )
            return [Malformed(raw=payload, reason=reason)]

        events: List[StreamEvent] = []
        if frame.chat_id and self._session_id is None:
            self._session_id = frame.chat_id
            events.append(SessionAssigned(session_id=frame.chat_id))

        # done 优先：同一帧里的 content 不再作为增量追加
        if frame.done:
            events.append(Completed(error=frame.error))
        elif frame.content:
            events.append(ContentDelta(text=frame.content))
        return events
