from dataclasses import dataclass
from datetime import datetime
from typing import List, Protocol

from .models import Role


@dataclass
class StoredMessage:
    id: str
    role: Role
    content: str
    created_at: datetime


class HistoryStore(Protocol):
    """按用户划分的聊天历史存储。

    三个操作都可能失败，失败时抛出 PersistenceError，与“结果为空”严格区分。
    load_history 必须按时间升序返回。
    """

    async def load_history(self, user_id: str) -> List[StoredMessage]:
        ...

    async def save_message(self, user_id: str, role: Role, content: str) -> StoredMessage:
        ...

    async def clear_history(self, user_id: str) -> None:
        ...
