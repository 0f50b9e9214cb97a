"""Finac AI 聊天接口的 HTTP 适配器。

本模块负责：

1. 把 (chatId, message) 转成 POST /api/ai/chat 请求，并把响应体按块交给上层。
2. 处理网络异常与非 2xx 响应（尽量从 JSON 的 error 字段取错误信息）。
3. 把会话 / 会话列表的 JSON 解析为 ChatSession / ChatSummary。

frame 切分与事件解释不在这里做，见 finac_chat.stream。
"""

from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import quote

import httpx

from finac_chat.domain.exceptions import ApiError, NetworkError, ValidationError
from finac_chat.domain.models import ChatSession, ChatSummary


class FinacApiClient:
    """基于 httpx.AsyncClient 的 ChatApi 实现。

    每次调用都新建一个 AsyncClient，transport 参数主要用于测试注入
    httpx.MockTransport。
    """

    name = "finac"

    def __init__(self, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Settings 里包含 base_url、路径、超时与 cookie 配置
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers: Dict[str, str] = {}
        cookie_value = getattr(self._settings, "auth_cookie", None)
        if cookie_value:
            # 登录态直接放进 Cookie 头，避免 cookiejar 的域名匹配规则
            headers["Cookie"] = f"{self._settings.auth_cookie_name}={cookie_value}"
        return httpx.AsyncClient(
            base_url=self._settings.base_url,
            timeout=self._settings.http_timeout,
            trust_env=False,
            transport=self._transport,
            headers=headers,
        )

    def _chat_url(self, chat_id: str) -> str:
        return f"{self._settings.chat_path}/{quote(chat_id, safe='')}"

    async def stream_chat(self, chat_id: Optional[str], message: str) -> AsyncIterator[str]:
        """发送消息并逐块 yield 响应文本。

        chatId 为 None 表示新会话，服务端会在流中返回新分配的 id。
        """

        payload = {"chatId": chat_id, "message": message}
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self._settings.chat_path,
                    json=payload,
                    headers={"Accept": "text/event-stream"},
                ) as resp:
                    if not resp.is_success:
                        await resp.aread()
                        raise self._api_error(resp)
                    async for chunk in resp.aiter_text():
                        if chunk:
                            yield chunk
        except (httpx.RequestError, httpx.StreamError) as e:
            # 网络错误：DNS 失败、连接中断、读取超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)

    async def get_chat(self, chat_id: str) -> ChatSession:
        data = await self._request_json("GET", self._chat_url(chat_id))
        chat = data.get("chat")
        if not isinstance(chat, dict):
            raise ValidationError(code="BAD_RESPONSE", message="response has no 'chat' object")
        return ChatSession.from_payload(chat)

    async def list_chats(self) -> List[ChatSummary]:
        data = await self._request_json("GET", self._settings.chats_path)
        chats = data.get("chats")
        if not isinstance(chats, list):
            raise ValidationError(code="BAD_RESPONSE", message="response has no 'chats' list")
        return [ChatSummary.from_payload(c) for c in chats]

    async def delete_chat(self, chat_id: str) -> None:
        await self._request_json("DELETE", self._chat_url(chat_id))

    async def rename_chat(self, chat_id: str, title: str) -> None:
        if not title or not title.strip():
            raise ValidationError(code="TITLE_REQUIRED", message="Title is required")
        await self._request_json("PATCH", self._chat_url(chat_id), json={"title": title})

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                resp = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if not resp.is_success:
            raise self._api_error(resp)
        try:
            data = resp.json()
        except ValueError as e:
            raise ValidationError(code="BAD_RESPONSE", message=str(e))
        if not isinstance(data, dict):
            raise ValidationError(code="BAD_RESPONSE", message="response is not a JSON object")
        return data

    @staticmethod
    def _api_error(resp: httpx.Response) -> ApiError:
        """非 2xx 响应：优先使用 JSON 里的 error 字段，否则退回到状态行。"""

        message = None
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
            message = data["error"]
        if not message:
            message = f"HTTP {resp.status_code}: {resp.reason_phrase}"
        return ApiError(code="API_ERROR", message=message, http_status=resp.status_code)
