from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import positions
from .config import DEFAULT_COLUMNS
from .db import Board, ColumnModel, Task, now_utc
from .errors import ConflictError, NotFoundError, ValidationError
from .schemas import BoardSeed
from .utils import hash_password, new_uuid, password_matches

logger = logging.getLogger(__name__)


def column_lock(board_id: str, column_ids: Iterable[str]) -> Select:
    """Row lock on the columns whose task positions are about to be rewritten.

    Concurrent writers to the same column queue on this lock, so each one
    renumbers from the positions the previous one committed.
    """
    return (
        select(ColumnModel)
        .where(ColumnModel.board_id == board_id, ColumnModel.id.in_(sorted(set(column_ids))))
        .order_by(ColumnModel.id)
        .with_for_update()
    )


class BoardStore:
    """Relational store for boards, their columns and tasks.

    Each mutating method runs as one transaction: it commits once on success
    and rolls back every touched row on failure.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # === Board operations ===
    def find_board(self, alias: str) -> Optional[Board]:
        return self.db.scalars(select(Board).where(Board.alias == alias)).first()

    def get_board(self, alias: str) -> Board:
        board = self.find_board(alias)
        if board is None:
            raise NotFoundError("Board not found", {"alias": alias})
        return board

    def get_or_create_board(self, alias: str, password: Optional[str] = None) -> Board:
        board = self.find_board(alias)
        if board is not None:
            if not board.columns:
                logger.warning("Board %s has no columns, recreating defaults", alias)
                with self.transaction():
                    board.columns = self._columns_for(board, DEFAULT_COLUMNS)
                    board.column_order = [cid for cid, _ in DEFAULT_COLUMNS]
            return board
        try:
            with self.transaction():
                board = self._new_board(alias, alias, password, DEFAULT_COLUMNS)
        except IntegrityError:
            # Lost a create race on the unique alias; use the winner's board.
            board = self.find_board(alias)
            if board is None:
                raise
            return board
        logger.info("Created board %s", alias)
        return board

    def update_board(
        self,
        board: Board,
        title: Optional[str] = None,
        column_order: Optional[Sequence[str]] = None,
    ) -> Board:
        with self.transaction():
            if title is not None:
                board.title = title.strip()
            if column_order is not None:
                by_id = {c.id: c for c in board.columns}
                if len(column_order) != len(by_id) or set(column_order) != set(by_id):
                    raise ValidationError(
                        "columnOrder must list every column exactly once",
                        {"columnOrder": list(column_order), "columns": sorted(by_id)},
                    )
                for i, column_id in enumerate(column_order):
                    by_id[column_id].position = i
                board.column_order = list(column_order)
            board.updated_at = now_utc()
        logger.info("Updated board %s", board.alias)
        return board

    def delete_board(self, board: Board) -> None:
        alias = board.alias
        with self.transaction():
            self.db.delete(board)
        logger.info("Deleted board %s", alias)

    def duplicate_board(
        self,
        alias: str,
        source_alias: Optional[str] = None,
        seed: Optional[BoardSeed] = None,
        password: Optional[str] = None,
    ) -> Board:
        """Create ``alias`` as a copy of ``source_alias`` or from ``seed``."""
        try:
            with self.transaction():
                if self.find_board(alias) is not None:
                    raise ConflictError("Board alias already exists", {"alias": alias})
                if source_alias:
                    board = self._copy_board(alias, self.get_board(source_alias), password)
                elif seed is not None:
                    board = self._seed_board(alias, seed, password)
                else:
                    raise ValidationError("sourceAlias or boardData is required")
        except IntegrityError as exc:
            raise ConflictError("Board alias already exists", {"alias": alias}) from exc
        logger.info("Duplicated board %s from %s", alias, source_alias or "client data")
        return board

    def board_tasks(self, board: Board) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.board_id == board.id)
            .order_by(Task.column_id, Task.position, Task.created_at, Task.id)
        )
        return list(self.db.scalars(stmt))

    def ordered_columns(self, board: Board) -> list[ColumnModel]:
        by_id = {c.id: c for c in board.columns}
        order = [cid for cid in board.column_order or [] if cid in by_id]
        if set(order) != set(by_id):
            return sorted(board.columns, key=lambda c: (c.position, c.id))
        return [by_id[cid] for cid in order]

    # === Password gate ===
    def set_password(self, board: Board, password: str) -> None:
        if not password:
            raise ValidationError("Password is required")
        with self.transaction():
            board.edit_password = hash_password(password)
            board.updated_at = now_utc()
        logger.info("Edit password set for board %s", board.alias)

    def requires_password(self, alias: str) -> bool:
        board = self.find_board(alias)
        return bool(board is not None and board.edit_password)

    def check_password(self, alias: str, password: Optional[str]) -> bool:
        if not password:
            return False
        board = self.find_board(alias)
        if board is None or not board.edit_password:
            return False
        return password_matches(board.edit_password, password)

    # === Task operations ===
    def add_task(
        self,
        board: Board,
        column_id: str,
        title: str,
        description: Optional[str] = "",
        priority: str = "medium",
        index: Optional[int] = None,
    ) -> Task:
        with self.transaction():
            column = self._lock_columns(board, column_id)[column_id]
            existing = self.column_tasks(board, column.id)
            now = now_utc()
            task = Task(
                id=new_uuid(),
                board_id=board.id,
                column_id=column.id,
                title=title.strip(),
                description=(description or "").strip(),
                priority=priority,
                position=len(existing),
                created_at=now,
                updated_at=now,
            )
            self.db.add(task)
            positions.insert(existing, task, index)
            board.updated_at = now
        logger.info("Added task %s to %s/%s at %d", task.id, board.alias, column_id, task.position)
        return task

    def update_task(
        self,
        board: Board,
        task_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> Task:
        with self.transaction():
            task = self.get_task(board, task_id)
            if title is not None:
                task.title = title.strip()
            if description is not None:
                task.description = description.strip()
            if priority is not None:
                task.priority = priority
            task.updated_at = now_utc()
            board.updated_at = task.updated_at
        return task

    def move_task(
        self,
        board: Board,
        task_id: str,
        source_column_id: str,
        destination_column_id: str,
        destination_index: int,
    ) -> Task:
        with self.transaction():
            locked = self._lock_columns(board, source_column_id, destination_column_id)
            source = locked[source_column_id]
            destination = locked[destination_column_id]
            source_tasks = self.column_tasks(board, source.id)
            if source.id == destination.id:
                _, ordered = positions.move(source_tasks, None, task_id, destination_index)
            else:
                dest_tasks = self.column_tasks(board, destination.id)
                _, ordered = positions.move(source_tasks, dest_tasks, task_id, destination_index)
            task = next(t for t in ordered if t.id == task_id)
            now = now_utc()
            task.column_id = destination.id
            task.updated_at = now
            board.updated_at = now
        logger.info(
            "Moved task %s on %s: %s -> %s[%d]",
            task_id, board.alias, source_column_id, destination_column_id, task.position,
        )
        return task

    def delete_task(self, board: Board, task_id: str) -> None:
        with self.transaction():
            task = self.get_task(board, task_id)
            self._lock_columns(board, task.column_id)
            positions.remove(self.column_tasks(board, task.column_id), task_id)
            self.db.delete(task)
            board.updated_at = now_utc()
        logger.info("Deleted task %s from %s", task_id, board.alias)

    # === Lookups ===
    def get_task(self, board: Board, task_id: str) -> Task:
        task = self.db.get(Task, task_id)
        if task is None or task.board_id != board.id:
            raise NotFoundError("Task not found", {"taskId": task_id})
        return task

    def column_tasks(self, board: Board, column_id: str) -> list[Task]:
        stmt = (
            select(Task)
            .where(Task.board_id == board.id, Task.column_id == column_id)
            .order_by(Task.position, Task.created_at, Task.id)
        )
        return list(self.db.scalars(stmt))

    # === Helpers ===
    def _lock_columns(self, board: Board, *column_ids: str) -> dict[str, ColumnModel]:
        found = {c.id: c for c in self.db.scalars(column_lock(board.id, column_ids))}
        for column_id in column_ids:
            if column_id not in found:
                raise NotFoundError("Column not found", {"columnId": column_id})
        return found

    def _columns_for(self, board: Board, columns: Iterable[tuple[str, str]]) -> list[ColumnModel]:
        return [
            ColumnModel(board_id=board.id, id=column_id, title=title, position=i)
            for i, (column_id, title) in enumerate(columns)
        ]

    def _new_board(
        self,
        alias: str,
        title: str,
        password: Optional[str],
        columns: Sequence[tuple[str, str]],
    ) -> Board:
        now = now_utc()
        board = Board(
            id=new_uuid(),
            alias=alias,
            title=title,
            column_order=[column_id for column_id, _ in columns],
            edit_password=hash_password(password) if password else None,
            created_at=now,
            updated_at=now,
        )
        board.columns = self._columns_for(board, columns)
        self.db.add(board)
        self.db.flush()
        return board

    def _add_copies(self, board: Board, column_id: str, rows: Iterable[tuple[str, str, str]]) -> None:
        now = now_utc()
        for i, (title, description, priority) in enumerate(rows):
            self.db.add(
                Task(
                    id=new_uuid(),
                    board_id=board.id,
                    column_id=column_id,
                    title=title,
                    description=description,
                    priority=priority,
                    position=i,
                    created_at=now,
                    updated_at=now,
                )
            )

    def _copy_board(self, alias: str, source: Board, password: Optional[str]) -> Board:
        columns = [(c.id, c.title) for c in self.ordered_columns(source)]
        tasks = self.board_tasks(source)
        board = self._new_board(alias, source.title, password, columns)
        for column_id, _ in columns:
            self._add_copies(
                board,
                column_id,
                [(t.title, t.description, t.priority) for t in tasks if t.column_id == column_id],
            )
        return board

    def _seed_board(self, alias: str, seed: BoardSeed, password: Optional[str]) -> Board:
        defaults = dict(DEFAULT_COLUMNS)
        unknown = sorted(set(seed.columns) - set(defaults))
        if unknown:
            raise ValidationError("Unknown columns in boardData", {"columns": unknown})
        order = [cid for cid, _ in DEFAULT_COLUMNS]
        if seed.columnOrder is not None:
            if sorted(seed.columnOrder) != sorted(order):
                raise ValidationError(
                    "columnOrder must list every column exactly once",
                    {"columnOrder": seed.columnOrder},
                )
            order = list(seed.columnOrder)
        columns = []
        for column_id in order:
            column_seed = seed.columns.get(column_id)
            title = column_seed.title if column_seed and column_seed.title else defaults[column_id]
            columns.append((column_id, title))
        board = self._new_board(alias, (seed.title or alias).strip(), password, columns)
        for column_id, column_seed in seed.columns.items():
            self._add_copies(
                board,
                column_id,
                [(t.title, (t.description or "").strip(), t.priority) for t in column_seed.tasks],
            )
        return board
