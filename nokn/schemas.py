from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, model_validator

Priority = Literal["low", "medium", "high"]


class ErrorOut(BaseModel):
    error: str
    details: Optional[Any] = None


class Health(BaseModel):
    status: str = "ok"
    message: str = ""


class Success(BaseModel):
    success: bool = True
    message: Optional[str] = None


# === Tasks ===


class TaskIn(BaseModel):
    """Task body. ``content`` is accepted as an alias of ``title``."""

    title: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = Field(default=None, max_length=500)
    description: Optional[str] = Field(default="", max_length=8000)
    priority: Priority = "medium"

    @model_validator(mode="after")
    def _require_title(self) -> "TaskIn":
        text = (self.title or self.content or "").strip()
        if not text:
            raise ValueError("title or content is required")
        self.title = text
        return self


class TaskCreate(TaskIn):
    columnId: str = Field(min_length=1)
    index: Optional[int] = Field(default=None, ge=0)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=8000)
    priority: Optional[Priority] = None


class TaskMove(BaseModel):
    taskId: str = Field(min_length=1)
    sourceColumnId: str = Field(min_length=1)
    destinationColumnId: str = Field(min_length=1)
    destinationIndex: int = Field(ge=0)


class TaskOut(BaseModel):
    id: str
    content: str
    title: str
    description: str
    priority: str
    position: int
    columnId: str
    createdAt: datetime
    updatedAt: datetime


class TaskMoved(BaseModel):
    success: bool = True
    task: TaskOut


# === Boards ===


class ColumnOut(BaseModel):
    id: str
    title: str
    tasks: list[TaskOut] = Field(default_factory=list)


class BoardOut(BaseModel):
    alias: str
    title: str
    columns: dict[str, ColumnOut]
    columnOrder: list[str]
    requiresPassword: bool
    createdAt: datetime
    updatedAt: datetime


class BoardUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    columnOrder: Optional[list[str]] = None


class ColumnSeed(BaseModel):
    title: Optional[str] = Field(default=None, max_length=80)
    tasks: list[TaskIn] = Field(default_factory=list)


class BoardSeed(BaseModel):
    """Board contents supplied by a client, e.g. a board kept only locally."""

    title: Optional[str] = Field(default=None, max_length=200)
    columnOrder: Optional[list[str]] = None
    columns: dict[str, ColumnSeed] = Field(default_factory=dict)


class BoardDuplicate(BaseModel):
    sourceAlias: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = None
    boardData: Optional[BoardSeed] = None


# === Password gate ===


class PasswordIn(BaseModel):
    password: str = ""


class EditableOut(BaseModel):
    requiresPassword: bool


class ValidOut(BaseModel):
    valid: bool
