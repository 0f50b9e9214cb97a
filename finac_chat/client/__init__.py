"""Finac 服务端接口层。

- base: ChatApi 协议。
- http_client: 基于 httpx 的 FinacApiClient。
"""

from typing import Optional

from finac_chat.client.base import ChatApi
from finac_chat.client.http_client import FinacApiClient
from finac_chat.config.settings import settings


def create_client(base_url: Optional[str] = None) -> ChatApi:
    """根据配置创建客户端，base_url 可临时覆盖配置中的地址。"""

    if base_url:
        return FinacApiClient(settings.model_copy(update={"base_url": base_url.rstrip("/")}))
    return FinacApiClient(settings)


__all__ = ["ChatApi", "FinacApiClient", "create_client"]
