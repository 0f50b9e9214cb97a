"""对外 API 服务模块。

提供同步的函数接口，方便脚本或其他非异步代码直接调用。
"""

import asyncio
from typing import Any, Dict, Optional

from finac_chat.chat.controller import ReconciliationController
from finac_chat.client import create_client
from finac_chat.client.base import ChatApi
from finac_chat.domain.models import ChatMessage
from finac_chat.infrastructure.logging.logger import logger


_api: Optional[ChatApi] = None


def get_default_api() -> ChatApi:
    """获取默认的 ChatApi 实例（单例）。"""
    global _api
    if _api is None:
        _api = create_client()
    return _api


def _message_to_dict(m: ChatMessage) -> Dict[str, Any]:
    return {
        "id": m.id,
        "chat_id": m.chat_id,
        "role": m.role,
        "content": m.content,
        "response_type": m.response_type,
        "metadata": m.metadata,
        "created_at": m.created_at.isoformat(),
    }


def run_chat_turn(message: str, chat_id: Optional[str] = None) -> Dict[str, Any]:
    """发送一条消息并等待本轮完成（含对账）。

    Args:
        message: 用户输入内容
        chat_id: 会话ID（可选，不提供则由服务端创建新会话）

    Returns:
        包含本轮状态、会话ID、错误信息以及对账后消息列表的字典
    """
    controller = ReconciliationController(get_default_api(), chat_id=chat_id)
    try:
        result = asyncio.run(controller.send(message))
    except Exception as e:
        logger.error(f"Chat turn failed: {e}", extra={"extra": {
            "chat_id": chat_id,
            "error": str(e),
        }})
        raise
    return {
        "status": result.status if result else "skipped",
        "chat_id": controller.active_chat_id,
        "error": result.error if result else None,
        "error_code": result.error_code if result else None,
        "messages": [_message_to_dict(m) for m in controller.messages],
    }


def list_chats() -> list[Dict[str, Any]]:
    """列出所有会话。

    Returns:
        会话列表，每项包含 id, title, created_at, updated_at
    """
    chats = asyncio.run(get_default_api().list_chats())
    return [
        {
            "id": c.id,
            "title": c.title,
            "created_at": c.created_at.isoformat(),
            "updated_at": c.updated_at.isoformat(),
        }
        for c in chats
    ]


def get_chat_messages(chat_id: str) -> list[Dict[str, Any]]:
    """获取会话的所有消息。"""
    session = asyncio.run(get_default_api().get_chat(chat_id))
    return [_message_to_dict(m) for m in session.messages]
