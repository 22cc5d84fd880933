import pytest

from study_core.domain.exceptions import PersistenceError
from study_core.infrastructure.storage.json_store import JsonHistoryStore


@pytest.mark.asyncio
async def test_save_and_load_in_order(tmp_path):
    store = JsonHistoryStore(root=tmp_path / ".storage")
    first = await store.save_message("user-1", "user", "hello")
    second = await store.save_message("user-1", "assistant", "hi there")

    history = await store.load_history("user-1")
    assert [m.id for m in history] == [first.id, second.id]
    assert [m.role for m in history] == ["user", "assistant"]
    assert history[1].content == "hi there"
    assert first.id != second.id


@pytest.mark.asyncio
async def test_users_are_partitioned(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    await store.save_message("alice", "user", "a")
    await store.save_message("bob", "user", "b")
    assert [m.content for m in await store.load_history("alice")] == ["a"]
    assert await store.load_history("carol") == []


@pytest.mark.asyncio
async def test_similar_user_ids_do_not_share_history(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    await store.save_message("alice@example.com", "user", "alice secret")
    await store.save_message("alice_example.com", "user", "other")

    assert [m.content for m in await store.load_history("alice@example.com")] == ["alice secret"]
    assert [m.content for m in await store.load_history("alice_example.com")] == ["other"]

    await store.clear_history("alice_example.com")
    assert await store.load_history("alice_example.com") == []
    assert [m.content for m in await store.load_history("alice@example.com")] == ["alice secret"]


@pytest.mark.asyncio
async def test_clear_history(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    await store.save_message("alice", "user", "a")
    await store.clear_history("alice")
    assert await store.load_history("alice") == []
    # 再次清空不报错
    await store.clear_history("alice")


@pytest.mark.asyncio
async def test_corrupt_lines_are_skipped(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    await store.save_message("alice", "user", "kept")
    path = store._path_for("alice")
    with path.open("a", encoding="utf-8") as f:
        f.write("{broken\n")
        f.write('{"id": "x", "role": "system", "content": "no", "created_at": "2024-01-01T00:00:00Z"}\n')
    history = await store.load_history("alice")
    assert [m.content for m in history] == ["kept"]


@pytest.mark.asyncio
async def test_user_id_never_escapes_history_dir(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    await store.save_message("../evil/user", "user", "x")
    files = list((tmp_path / "history").iterdir())
    assert len(files) == 1
    assert files[0].parent == tmp_path / "history"


@pytest.mark.asyncio
async def test_write_failure_raises_persistence_error(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    # 用目录占住文件名，写入必然失败
    store._path_for("alice").mkdir()
    with pytest.raises(PersistenceError) as exc_info:
        await store.save_message("alice", "user", "x")
    assert exc_info.value.code == "STORE_WRITE_ERROR"


@pytest.mark.asyncio
async def test_empty_user_id_is_rejected(tmp_path):
    store = JsonHistoryStore(root=tmp_path)
    with pytest.raises(PersistenceError):
        await store.load_history("")
