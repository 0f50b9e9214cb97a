"""对话客户端的错误类型。

控制器只把 BusinessError 视为“本轮失败”：合成一条助手错误消息并回到 IDLE。
其他异常同样结束本轮，但会带着 traceback 记录下来。
"""

from typing import Any, Dict


class BusinessError(Exception):
    """可以直接展示给用户的错误。

    Attributes:
        code: 机器可读错误码，如 "STREAM_TIMEOUT"、"API_ERROR"。
        message: 拼进合成助手消息里的文本。
        http_status: 服务端返回的状态码；本地产生的错误为 400。
        extra: 附带的上下文（chat_id、exchange_id 等），写日志时一并输出。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra: Any):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"code": self.code, "error": self.message}
        if self.http_status != 400:
            data["http_status"] = self.http_status
        data.update(self.extra)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NetworkError(BusinessError):
    """连接失败或读取中断。"""


class ApiError(BusinessError):
    """非 2xx 响应；message 优先取响应体里的 error 字段。"""


class StreamTimeoutError(BusinessError):
    """流式响应超过 stream_idle_timeout 没有新数据。"""


class ValidationError(BusinessError):
    """本地输入、状态或服务端数据不合法。"""
