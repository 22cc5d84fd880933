"""Study Core 顶层包。

个性化学习助手的核心实现：根据用户偏好生成 system prompt、
解析模型网关返回的 SSE 流、维护聊天会话与历史记录持久化。
"""

from study_core.chat.session import ChatSession, SendResult, SessionEvent, SessionState
from study_core.domain.models import Message, PreferenceProfile
from study_core.prompts import compose_system_prompt

__all__ = [
    "ChatSession",
    "SendResult",
    "SessionEvent",
    "SessionState",
    "Message",
    "PreferenceProfile",
    "compose_system_prompt",
]
