"""Finac Chat 顶层包。

该包提供 Finac AI 助手的客户端核心：流式响应解码、事件解释、
乐观消息存储，以及负责发送、流式渲染与对账的对话控制器。
"""

from finac_chat.chat import ExchangeState, ReconciliationController
from finac_chat.client import FinacApiClient, create_client

__all__ = ["ExchangeState", "ReconciliationController", "FinacApiClient", "create_client"]
