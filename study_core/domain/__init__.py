"""领域层模型与协议。

包含：
- models: 偏好档案、会话消息与网关消息模型。
- history: 历史记录的存储模型及 HistoryStore 抽象。
- exceptions: 业务异常类型定义。
"""
