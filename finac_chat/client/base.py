"""Chat API 抽象接口。

控制器不直接依赖 httpx，而是依赖此协议：

- stream_chat: 发送一条消息，逐块产出服务端的流式响应文本。
- get_chat / list_chats: 流结束后用于对账的两个重新加载接口。
- delete_chat / rename_chat: 会话列表上的管理操作。

测试里用一个实现了同样方法的假对象替换即可。
"""

from typing import AsyncIterator, List, Optional, Protocol

from finac_chat.domain.models import ChatSession, ChatSummary


class ChatApi(Protocol):
    name: str

    def stream_chat(self, chat_id: Optional[str], message: str) -> AsyncIterator[str]:
        """POST 消息并逐块产出响应文本；非 2xx 抛 ApiError，网络异常抛 NetworkError。"""

        ...

    async def get_chat(self, chat_id: str) -> ChatSession:
        ...

    async def list_chats(self) -> List[ChatSummary]:
        ...

    async def delete_chat(self, chat_id: str) -> None:
        ...

    async def rename_chat(self, chat_id: str, title: str) -> None:
        ...
