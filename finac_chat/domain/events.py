"""流式响应被解释后的事件类型。

StreamEvent 是一个标签联合：每个成功解码的 frame 产生若干事件，
解析失败的 frame 产生 Malformed，交给控制器按类型分派。
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class ContentDelta:
    """一段需要追加到“进行中助手消息”的增量文本。"""

    text: str


@dataclass(frozen=True)
class SessionAssigned:
    """服务端为本轮对话分配的会话 id（新会话才会产生）。"""

    session_id: str


@dataclass(frozen=True)
class Completed:
    """本轮结束。implicit=True 表示流自然结束而没有收到 done。"""

    implicit: bool = False
    # 服务端在 done frame 里附带的错误说明，仅用于日志
    error: Optional[str] = None


@dataclass(frozen=True)
class Malformed:
    raw: str
    reason: str = ""


StreamEvent = Union[ContentDelta, SessionAssigned, Completed, Malformed]
