import pytest
from sqlalchemy.dialects import postgresql

from nokn import positions, storage
from nokn.errors import ConflictError, NotFoundError
from nokn.storage import BoardStore


def _positions(store: BoardStore, board, column_id: str) -> list[tuple[str, int]]:
    return [(t.title, t.position) for t in store.column_tasks(board, column_id)]


def test_get_or_create_is_idempotent(store: BoardStore):
    first = store.get_or_create_board("alpha", password="pw")
    second = store.get_or_create_board("alpha")
    assert first.id == second.id
    assert [c.id for c in store.ordered_columns(second)] == ["todo", "inprogress", "complete"]
    assert store.check_password("alpha", "pw")
    assert not store.check_password("alpha", "nope")
    assert not store.check_password("alpha", None)


def test_open_board_has_no_valid_password(store: BoardStore):
    store.get_or_create_board("open")
    assert store.requires_password("open") is False
    assert store.check_password("open", "anything") is False


def test_failed_move_rolls_back_every_position(store: BoardStore, monkeypatch):
    board = store.get_or_create_board("atomic")
    tasks = [store.add_task(board, "todo", t) for t in "abc"]
    store.add_task(board, "complete", "x")

    def explode(*args, **kwargs):
        raise RuntimeError("store went away")

    monkeypatch.setattr(positions, "insert", explode)
    with pytest.raises(RuntimeError):
        store.move_task(board, tasks[0].id, "todo", "complete", 0)

    assert _positions(store, board, "todo") == [("a", 0), ("b", 1), ("c", 2)]
    assert _positions(store, board, "complete") == [("x", 0)]


def test_move_unknown_task_leaves_store_unchanged(store: BoardStore):
    board = store.get_or_create_board("nf")
    store.add_task(board, "todo", "a")
    with pytest.raises(NotFoundError):
        store.move_task(board, "6f1f0e9c-3c8f-4c53-8f0e-6c1d2b3a4f50", "todo", "complete", 0)
    assert _positions(store, board, "todo") == [("a", 0)]


def test_duplicate_conflict_leaves_destination(store: BoardStore):
    store.add_task(store.get_or_create_board("foo"), "todo", "foo task")
    bar = store.get_or_create_board("bar")
    store.add_task(bar, "todo", "bar task")
    with pytest.raises(ConflictError):
        store.duplicate_board("bar", source_alias="foo")
    assert _positions(store, store.get_board("bar"), "todo") == [("bar task", 0)]


def test_board_without_columns_gets_defaults(store: BoardStore, db_session):
    board = store.get_or_create_board("bare")
    for column in list(board.columns):
        db_session.delete(column)
    db_session.commit()

    board = store.get_or_create_board("bare")
    assert sorted(c.id for c in board.columns) == ["complete", "inprogress", "todo"]


def test_new_uuid_is_used_for_task_ids(store: BoardStore, monkeypatch):
    monkeypatch.setattr(storage, "new_uuid", lambda: "00000000-0000-4000-8000-000000000001")
    board = store.get_or_create_board("fixed")
    task = store.add_task(board, "todo", "a")
    assert task.id == "00000000-0000-4000-8000-000000000001"


def test_task_writes_lock_their_columns():
    stmt = storage.column_lock("board-1", ["todo", "complete", "todo"])
    sql = str(stmt.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql
    assert "ORDER BY columns.id" in sql


def test_locked_writes_keep_columns_dense(store: BoardStore, monkeypatch):
    locked = []
    real_lock = storage.column_lock

    def spy(board_id, column_ids):
        locked.append(sorted(set(column_ids)))
        return real_lock(board_id, column_ids)

    monkeypatch.setattr(storage, "column_lock", spy)
    board = store.get_or_create_board("locks")
    a = store.add_task(board, "todo", "a")
    store.add_task(board, "todo", "b")
    store.move_task(board, a.id, "todo", "complete", 0)
    store.delete_task(board, a.id)

    assert locked == [["todo"], ["todo"], ["complete", "todo"], ["complete"]]
    assert _positions(store, board, "todo") == [("b", 0)]
    with pytest.raises(NotFoundError):
        store.add_task(board, "backlog", "c")
