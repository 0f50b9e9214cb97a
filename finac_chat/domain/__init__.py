"""领域层模型与协议。

包含：
- models: ChatMessage / ChatSummary / ChatSession。
- events: 流式事件 ContentDelta / SessionAssigned / Completed / Malformed。
- exceptions: 业务异常类型定义。
"""
