"""对话控制：一轮发送、流式读取与对账。"""

from finac_chat.chat.controller import (
    ExchangeResult,
    ExchangeState,
    ReconciliationController,
    SessionContext,
)

__all__ = ["ExchangeResult", "ExchangeState", "ReconciliationController", "SessionContext"]
