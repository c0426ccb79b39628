from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Callable, Optional

from ..config import DEFAULT_PRIORITY, PLACEHOLDER_PREFIX
from ..errors import NotFoundError, ValidationError
from .api import REQUEST_ERRORS, BoardApi
from .state import (
    Action,
    BoardLoaded,
    BoardState,
    PlaceholderAdded,
    PlaceholderConfirmed,
    PlaceholderDropped,
    SnapshotRestored,
    TaskCard,
    TaskMoved,
    TaskRemoved,
    TaskRestored,
    reduce,
)

logger = logging.getLogger(__name__)

Listener = Callable[[BoardState], None]


class PlaceholderTaskError(ValidationError):
    """The task has not been confirmed by the server yet."""


@dataclass(frozen=True)
class DeletedTask:
    task: TaskCard
    column_id: str
    index: int


class BoardSession:
    """Client mirror of one board with optimistic updates.

    Every dispatched action bumps ``version``, including confirmations,
    rollbacks and loads. A network result that arrives after a newer state
    change is stale: stale loads are dropped, and a failed move whose
    snapshot is stale triggers a reload instead of a rollback, so a late
    response never clobbers newer state.
    """

    def __init__(self, api: BoardApi, alias: str, password: Optional[str] = None) -> None:
        self.api = api
        self.alias = alias
        self.password = password
        self.state: Optional[BoardState] = None
        self.version = 0
        self.last_deleted: Optional[DeletedTask] = None
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def dispatch(self, action: Action) -> BoardState:
        self.state = reduce(self.state, action)
        self.version += 1
        for listener in list(self._listeners):
            listener(self.state)
        return self.state

    def _require_state(self) -> BoardState:
        if self.state is None:
            raise ValidationError("Board is not loaded", {"alias": self.alias})
        return self.state

    def _locate(self, task_id: str) -> tuple[str, int, TaskCard]:
        found = self._require_state().find_task(task_id)
        if found is None:
            raise NotFoundError("Task not found", {"taskId": task_id})
        return found

    async def load(self, new: bool = False) -> Optional[BoardState]:
        token = self.version
        payload = await self.api.get_board(self.alias, new=new, pwd=self.password)
        if token != self.version:
            logger.debug("Dropping stale load of %s (v%d < v%d)", self.alias, token, self.version)
            return self.state
        return self.dispatch(BoardLoaded(BoardState.from_payload(payload)))

    async def add_task(
        self,
        column_id: str,
        title: str,
        description: str = "",
        priority: str = DEFAULT_PRIORITY,
        index: Optional[int] = None,
    ) -> TaskCard:
        self._require_state().column(column_id)
        placeholder = TaskCard(
            id=f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex}",
            title=title.strip(),
            column_id=column_id,
            description=description,
            priority=priority,
            saving=True,
        )
        self.dispatch(PlaceholderAdded(placeholder, index))
        try:
            payload = await self.api.create_task(
                self.alias, column_id, title, description, priority, index, pwd=self.password
            )
        except REQUEST_ERRORS as exc:
            logger.warning("Create task on %s failed: %s", self.alias, exc)
            self.dispatch(PlaceholderDropped(placeholder.id))
            raise
        task = TaskCard.from_payload(payload, column_id)
        self.dispatch(PlaceholderConfirmed(placeholder.id, task))
        return task

    async def move_task(self, task_id: str, destination_column_id: str, destination_index: int) -> None:
        source_column_id, _, task = self._locate(task_id)
        if task.is_placeholder:
            raise PlaceholderTaskError("Task is still being saved", {"taskId": task_id})
        snapshot = self._require_state()
        snapshot.column(destination_column_id)
        self.dispatch(TaskMoved(task_id, source_column_id, destination_column_id, destination_index))
        token = self.version
        try:
            await self.api.move_task(
                self.alias,
                task_id,
                source_column_id,
                destination_column_id,
                destination_index,
                pwd=self.password,
            )
        except REQUEST_ERRORS as exc:
            logger.warning("Move of %s on %s failed: %s", task_id, self.alias, exc)
            if token == self.version:
                self.dispatch(SnapshotRestored(snapshot))
            else:
                await self._resync()
            raise

    async def delete_task(self, task_id: str) -> None:
        column_id, index, task = self._locate(task_id)
        if task.is_placeholder:
            raise PlaceholderTaskError("Task is still being saved", {"taskId": task_id})
        self.dispatch(TaskRemoved(task_id))
        deleted = self.last_deleted = DeletedTask(task, column_id, index)
        try:
            await self.api.delete_task(self.alias, task_id, pwd=self.password)
        except REQUEST_ERRORS as exc:
            logger.warning("Delete of %s on %s failed: %s", task_id, self.alias, exc)
            if self.last_deleted is deleted:
                self.last_deleted = None
            self.dispatch(TaskRestored(replace(task, column_id=column_id), index))
            raise

    async def undo_delete(self) -> Optional[TaskCard]:
        """Re-create the last deleted task at the index it was deleted from."""
        deleted = self.last_deleted
        if deleted is None:
            return None
        task = await self.add_task(
            deleted.column_id,
            deleted.task.title,
            deleted.task.description,
            deleted.task.priority,
            index=deleted.index,
        )
        if self.last_deleted is deleted:
            self.last_deleted = None
        return task

    async def _resync(self) -> None:
        try:
            await self.load()
        except REQUEST_ERRORS as exc:
            logger.warning("Reload of %s failed: %s", self.alias, exc)

    async def publish(self, alias: str, password: Optional[str] = None) -> BoardState:
        """Upload the current snapshot as a new board under ``alias``."""
        payload = await self.api.duplicate_board(
            alias, password=password, board_data=self._require_state().to_seed()
        )
        return BoardState.from_payload(payload)
