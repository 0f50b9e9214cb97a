"""流式响应解码：frame 切分（decoder）与事件解释（interpreter）。"""

from finac_chat.stream.decoder import FrameDecoder
from finac_chat.stream.interpreter import EventInterpreter

__all__ = ["FrameDecoder", "EventInterpreter"]
