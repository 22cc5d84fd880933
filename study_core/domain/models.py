"""统一的会话与偏好数据模型。

- PreferenceProfile: 用户在引导流程中选择的个性化设置，只读。
- Message: 会话 transcript 中的一条消息（含临时 id 与持久化 id 两阶段标识）。
- ChatMessage: 发给模型网关的 {role, content} 消息。
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Mapping, Optional
from uuid import uuid4


# transcript 中只出现 user/assistant；system 仅出现在发往网关的请求里
Role = Literal["user", "assistant"]
WireRole = Literal["system", "user", "assistant"]


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass(frozen=True)
class PreferenceProfile:
    """用户偏好档案，每个字段独立可缺省。

    - primary_purpose: studying / programming / productivity / general ...
    - knowledge_level: beginner / intermediate / advanced / expert
    - explanation_style: simple / concise / moderate / detailed / technical / examples / visual
    - response_length: short / medium / detailed
    - learning_preference: step-by-step / examples / theory
    """

    primary_purpose: Optional[str] = None
    knowledge_level: Optional[str] = None
    explanation_style: Optional[str] = None
    response_length: Optional[str] = None
    learning_preference: Optional[str] = None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> Optional["PreferenceProfile"]:
        """从档案存储的原始记录构造，同时接受 snake_case 与 camelCase 键。

        空字符串视为未设置；data 为 None 时返回 None（无个性化）。
        """

        if data is None:
            return None
        values: Dict[str, Optional[str]] = {}
        for f in fields(cls):
            raw = data.get(f.name, data.get(_camel(f.name)))
            if isinstance(raw, str):
                raw = raw.strip() or None
            values[f.name] = raw
        return cls(**values)

    def to_payload(self) -> Dict[str, Optional[str]]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class ChatMessage:
    """发给模型网关的一条消息。"""

    role: WireRole
    content: str

    def to_payload(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(eq=False)
class Message:
    """transcript 中的一条消息。

    标识分两阶段：client_temp_id 在创建时生成且永不变化，显示层以它作为 key；
    persisted_id 在存储确认后才被填入。content 对 assistant 消息在流式期间
    增量更新，流结束后不再修改。created_at / timestamp 创建后不变。
    """

    role: Role
    content: str
    client_temp_id: str = field(default_factory=lambda: f"tmp-{uuid4().hex}")
    persisted_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        return self.client_temp_id

    @property
    def timestamp(self) -> str:
        """展示用的 HH:MM 时间（本地时区）。"""

        return self.created_at.astimezone().strftime("%H:%M")

    @property
    def persisted(self) -> bool:
        return self.persisted_id is not None

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)
