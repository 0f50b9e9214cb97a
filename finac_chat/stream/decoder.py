"""流式响应的 frame 切分。

服务端以 ``data: {json}\\n\\n`` 的形式逐帧推送，传输层可能把一帧拆成多个
chunk，也可能一个 chunk 里带多帧。FrameDecoder 只负责把文本 chunk 还原成
完整的 payload 字符串，不关心 payload 的内容。
"""

from typing import List


FRAME_DELIMITER = "\n\n"
DATA_PREFIX = "data: "


class FrameDecoder:
    """增量 frame 解码器。

    每次 feed 都把 chunk 追加到缓冲区，再按空行切分：最后一段（可能为空）
    留作下次的缓冲，之前的每一段都是完整 frame。只有以 ``data: `` 开头的
    frame 会被返回（去掉前缀），注释 / keep-alive 之类的 frame 直接丢弃。
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> List[str]:
        if not chunk:
            return []
        self._buffer += chunk
        segments = self._buffer.split(FRAME_DELIMITER)
        self._buffer = segments.pop()
        return [s[len(DATA_PREFIX):] for s in segments if s.startswith(DATA_PREFIX)]

    @property
    def pending(self) -> str:
        """尚未凑成完整 frame 的缓冲内容。"""

        return self._buffer

    def reset(self) -> None:
        self._buffer = ""
