"""Immutable client-side board snapshots and the reducer that evolves them.

``reduce(state, action)`` never mutates ``state``; every action yields a new
``BoardState`` so a caller can hold on to any earlier snapshot and restore it
wholesale.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union

from ..config import DEFAULT_PRIORITY, PLACEHOLDER_PREFIX
from ..errors import NotFoundError


@dataclass(frozen=True)
class TaskCard:
    id: str
    title: str
    column_id: str
    description: str = ""
    priority: str = DEFAULT_PRIORITY
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    saving: bool = False

    @property
    def is_placeholder(self) -> bool:
        return self.saving or self.id.startswith(PLACEHOLDER_PREFIX)

    @classmethod
    def from_payload(cls, data: dict[str, Any], column_id: Optional[str] = None) -> TaskCard:
        return cls(
            id=data["id"],
            title=data.get("title") or data.get("content") or "",
            column_id=data.get("columnId") or column_id or "",
            description=data.get("description") or "",
            priority=data.get("priority") or DEFAULT_PRIORITY,
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )


@dataclass(frozen=True)
class ColumnState:
    id: str
    title: str
    tasks: tuple[TaskCard, ...] = ()


@dataclass(frozen=True)
class BoardState:
    alias: str
    title: str
    columns: tuple[ColumnState, ...] = ()
    requires_password: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def column_order(self) -> list[str]:
        return [c.id for c in self.columns]

    def column(self, column_id: str) -> ColumnState:
        for column in self.columns:
            if column.id == column_id:
                return column
        raise NotFoundError("Column not found", {"columnId": column_id})

    def find_task(self, task_id: str) -> Optional[tuple[str, int, TaskCard]]:
        """Return ``(column_id, index, task)`` for ``task_id`` or None."""
        for column in self.columns:
            for i, task in enumerate(column.tasks):
                if task.id == task_id:
                    return column.id, i, task
        return None

    def task_ids(self, column_id: str) -> list[str]:
        return [t.id for t in self.column(column_id).tasks]

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> BoardState:
        columns = data.get("columns") or {}
        order = data.get("columnOrder") or list(columns)
        return cls(
            alias=data["alias"],
            title=data.get("title") or data["alias"],
            columns=tuple(
                ColumnState(
                    id=column_id,
                    title=columns[column_id].get("title", column_id),
                    tasks=tuple(
                        TaskCard.from_payload(t, column_id)
                        for t in columns[column_id].get("tasks", [])
                    ),
                )
                for column_id in order
                if column_id in columns
            ),
            requires_password=bool(data.get("requiresPassword")),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_seed(self) -> dict[str, Any]:
        """Body for ``boardData`` when publishing this board under a new alias."""
        return {
            "title": self.title,
            "columnOrder": self.column_order,
            "columns": {
                c.id: {
                    "title": c.title,
                    "tasks": [
                        {"title": t.title, "description": t.description, "priority": t.priority}
                        for t in c.tasks
                        if not t.is_placeholder
                    ],
                }
                for c in self.columns
            },
        }


# === Actions ===


@dataclass(frozen=True)
class BoardLoaded:
    board: BoardState


@dataclass(frozen=True)
class PlaceholderAdded:
    task: TaskCard
    index: Optional[int] = None


@dataclass(frozen=True)
class PlaceholderConfirmed:
    placeholder_id: str
    task: TaskCard


@dataclass(frozen=True)
class PlaceholderDropped:
    placeholder_id: str


@dataclass(frozen=True)
class TaskMoved:
    task_id: str
    source_column_id: str
    destination_column_id: str
    destination_index: int


@dataclass(frozen=True)
class TaskRemoved:
    task_id: str


@dataclass(frozen=True)
class TaskRestored:
    task: TaskCard
    index: int


@dataclass(frozen=True)
class SnapshotRestored:
    board: BoardState


Action = Union[
    BoardLoaded,
    PlaceholderAdded,
    PlaceholderConfirmed,
    PlaceholderDropped,
    TaskMoved,
    TaskRemoved,
    TaskRestored,
    SnapshotRestored,
]


# === Reducer ===


def _clamp(index: Optional[int], count: int) -> int:
    if index is None:
        return count
    return max(0, min(index, count))


def _with_column(state: BoardState, column_id: str, tasks: tuple[TaskCard, ...]) -> BoardState:
    return replace(
        state,
        columns=tuple(replace(c, tasks=tasks) if c.id == column_id else c for c in state.columns),
    )


def _insert(state: BoardState, task: TaskCard, index: Optional[int]) -> BoardState:
    tasks = list(state.column(task.column_id).tasks)
    tasks.insert(_clamp(index, len(tasks)), task)
    return _with_column(state, task.column_id, tuple(tasks))


def _without(state: BoardState, task_id: str) -> BoardState:
    return replace(
        state,
        columns=tuple(
            replace(c, tasks=tuple(t for t in c.tasks if t.id != task_id))
            if any(t.id == task_id for t in c.tasks)
            else c
            for c in state.columns
        ),
    )


def _loaded(state: Optional[BoardState], action: BoardLoaded) -> BoardState:
    return action.board


def _placeholder_added(state: BoardState, action: PlaceholderAdded) -> BoardState:
    return _insert(state, replace(action.task, saving=True), action.index)


def _placeholder_confirmed(state: BoardState, action: PlaceholderConfirmed) -> BoardState:
    found = state.find_task(action.placeholder_id)
    if found is None:
        # Placeholder went away in the meantime; the server copy shows up on
        # the next load.
        return state
    column_id, _, _ = found
    confirmed = replace(action.task, column_id=column_id, saving=False)
    return replace(
        state,
        columns=tuple(
            replace(
                c,
                tasks=tuple(confirmed if t.id == action.placeholder_id else t for t in c.tasks),
            )
            if c.id == column_id
            else c
            for c in state.columns
        ),
    )


def _placeholder_dropped(state: BoardState, action: PlaceholderDropped) -> BoardState:
    return _without(state, action.placeholder_id)


def _task_moved(state: BoardState, action: TaskMoved) -> BoardState:
    found = state.find_task(action.task_id)
    if found is None or found[0] != action.source_column_id:
        return state
    moved = replace(found[2], column_id=action.destination_column_id)
    return _insert(_without(state, action.task_id), moved, action.destination_index)


def _task_removed(state: BoardState, action: TaskRemoved) -> BoardState:
    return _without(state, action.task_id)


def _task_restored(state: BoardState, action: TaskRestored) -> BoardState:
    if state.find_task(action.task.id) is not None:
        return state
    return _insert(state, action.task, action.index)


def _snapshot_restored(state: Optional[BoardState], action: SnapshotRestored) -> BoardState:
    return action.board


REDUCERS: dict[type, Callable[[Any, Any], BoardState]] = {
    BoardLoaded: _loaded,
    PlaceholderAdded: _placeholder_added,
    PlaceholderConfirmed: _placeholder_confirmed,
    PlaceholderDropped: _placeholder_dropped,
    TaskMoved: _task_moved,
    TaskRemoved: _task_removed,
    TaskRestored: _task_restored,
    SnapshotRestored: _snapshot_restored,
}


def reduce(state: Optional[BoardState], action: Action) -> BoardState:
    handler = REDUCERS.get(type(action))
    if handler is None:
        raise TypeError(f"unknown action {type(action).__name__}")
    if state is None and not isinstance(action, (BoardLoaded, SnapshotRestored)):
        raise ValueError("board is not loaded")
    return handler(state, action)
