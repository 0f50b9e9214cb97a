from finac_chat.store.message_store import OptimisticMessageStore

__all__ = ["OptimisticMessageStore"]
