import asyncio
import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List
from uuid import uuid4

from study_core.config.settings import settings
from study_core.domain.exceptions import PersistenceError
from study_core.domain.history import HistoryStore, StoredMessage
from study_core.domain.models import Role


class JsonHistoryStore(HistoryStore):
    """每个用户一个 messages.jsonl 文件，只追加写入。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._history_root = self._root / "history"
        self._history_root.mkdir(parents=True, exist_ok=True)

    async def load_history(self, user_id: str) -> List[StoredMessage]:
        return await asyncio.to_thread(self._load_sync, user_id)

    async def save_message(self, user_id: str, role: Role, content: str) -> StoredMessage:
        return await asyncio.to_thread(self._save_sync, user_id, role, content)

    async def clear_history(self, user_id: str) -> None:
        await asyncio.to_thread(self._clear_sync, user_id)

    def _path_for(self, user_id: str) -> Path:
        if not user_id:
            raise PersistenceError(code="INVALID_USER", message="user_id is empty")
        # 文件名取 user_id 的摘要，不同用户永远不会落到同一个文件
        digest = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        return self._history_root / f"{digest}.jsonl"

    def _load_sync(self, user_id: str) -> List[StoredMessage]:
        path = self._path_for(user_id)
        items: List[StoredMessage] = []
        if not path.exists():
            return items
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise PersistenceError(code="STORE_READ_ERROR", message=str(e))
        for line in lines:
            try:
                items.append(self._to_message(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                continue
        # sort 是稳定的，同一时间戳保持写入顺序
        items.sort(key=lambda m: m.created_at)
        return items

    def _save_sync(self, user_id: str, role: Role, content: str) -> StoredMessage:
        path = self._path_for(user_id)
        record = StoredMessage(
            id=f"m-{uuid4().hex}",
            role=role,
            content=content,
            created_at=datetime.now(timezone.utc),
        )
        payload = {
            "id": record.id,
            "role": record.role,
            "content": record.content,
            "created_at": record.created_at.isoformat().replace("+00:00", "Z"),
        }
        try:
            with path.open("a", encoding="utf-8") as f:
                f.write(json.dumps(payload, ensure_ascii=False) + "\n")
        except OSError as e:
            raise PersistenceError(code="STORE_WRITE_ERROR", message=str(e))
        return record

    def _clear_sync(self, user_id: str) -> None:
        path = self._path_for(user_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(code="STORE_DELETE_ERROR", message=str(e))

    def _to_message(self, data: Dict[str, Any]) -> StoredMessage:
        role = data["role"]
        if role not in ("user", "assistant"):
            raise ValueError(f"unexpected role {role!r}")
        return StoredMessage(
            id=data["id"],
            role=role,
            content=data.get("content") or "",
            created_at=datetime.fromisoformat(str(data["created_at"]).replace("Z", "+00:00")),
        )
