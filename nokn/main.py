import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import editable_board, get_store
from .config import VERSION
from .db import Board, Task, init_db
from .errors import BoardError, ValidationError
from .schemas import (
    BoardDuplicate,
    BoardOut,
    BoardUpdate,
    ColumnOut,
    EditableOut,
    ErrorOut,
    Health,
    PasswordIn,
    Success,
    TaskCreate,
    TaskMove,
    TaskMoved,
    TaskOut,
    TaskUpdate,
    ValidOut,
)
from .storage import BoardStore
from .utils import check_task_id

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="nokn API",
    version=VERSION,
    lifespan=lifespan,
    responses={code: {"model": ErrorOut} for code in (400, 403, 404, 409, 500)},
)


# === Error rendering ===


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Database error", "details": str(exc)})


# === Helpers ===


def task_out(task: Task) -> TaskOut:
    return TaskOut(
        id=task.id,
        content=task.title,
        title=task.title,
        description=task.description or "",
        priority=task.priority or "medium",
        position=task.position,
        columnId=task.column_id,
        createdAt=task.created_at,
        updatedAt=task.updated_at,
    )


def board_out(store: BoardStore, board: Board) -> BoardOut:
    columns = store.ordered_columns(board)
    by_column: dict[str, list[TaskOut]] = {c.id: [] for c in columns}
    for task in store.board_tasks(board):
        by_column.setdefault(task.column_id, []).append(task_out(task))
    return BoardOut(
        alias=board.alias,
        title=board.title or board.alias,
        columns={c.id: ColumnOut(id=c.id, title=c.title, tasks=by_column[c.id]) for c in columns},
        columnOrder=[c.id for c in columns],
        requiresPassword=bool(board.edit_password),
        createdAt=board.created_at,
        updatedAt=board.updated_at,
    )


# === Health & metadata ===


@app.get("/api/health", response_model=Health)
def health(store: BoardStore = Depends(get_store)):
    try:
        store.db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(status_code=500, content={"status": "error", "message": str(exc)})
    return Health(message="Database connection successful")


@app.get("/api/version")
def version() -> dict:
    return {"version": VERSION}


# === Board endpoints ===


@app.get("/api/boards/{alias}", response_model=BoardOut)
def get_board(
    alias: str,
    new: bool = False,
    pwd: Optional[str] = Query(default=None),
    store: BoardStore = Depends(get_store),
):
    board = store.get_or_create_board(alias, pwd if new else None)
    return board_out(store, board)


@app.put("/api/boards/{alias}", response_model=BoardOut)
def update_board(
    payload: BoardUpdate,
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    board = store.update_board(board, payload.title, payload.columnOrder)
    return board_out(store, board)


@app.delete("/api/boards/{alias}", response_model=Success)
def delete_board(
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    store.delete_board(board)
    return Success()


@app.post("/api/boards/{alias}", response_model=BoardOut, status_code=201)
def duplicate_board(
    alias: str,
    payload: BoardDuplicate,
    store: BoardStore = Depends(get_store),
):
    board = store.duplicate_board(
        alias,
        source_alias=payload.sourceAlias,
        seed=payload.boardData,
        password=payload.password or None,
    )
    return board_out(store, board)


# === Password gate endpoints ===


@app.get("/api/boards/{alias}/editable", response_model=EditableOut)
def board_editable(alias: str, store: BoardStore = Depends(get_store)):
    return EditableOut(requiresPassword=store.requires_password(alias))


@app.post("/api/boards/{alias}/password", response_model=Success)
def set_board_password(
    alias: str,
    payload: PasswordIn,
    store: BoardStore = Depends(get_store),
):
    if not payload.password:
        raise ValidationError("Password is required")
    store.set_password(store.get_board(alias), payload.password)
    return Success(message="Password set successfully")


@app.get("/api/boards/{alias}/validate", response_model=ValidOut)
def validate_password(
    alias: str,
    pwd: Optional[str] = Query(default=None),
    store: BoardStore = Depends(get_store),
):
    if not pwd:
        raise ValidationError("Password required")
    if not store.check_password(alias, pwd):
        return JSONResponse(status_code=403, content={"valid": False})
    return ValidOut(valid=True)


# === Task endpoints ===


@app.post("/api/boards/{alias}/tasks", response_model=TaskOut, status_code=201)
def create_task(
    payload: TaskCreate,
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    task = store.add_task(
        board,
        payload.columnId,
        payload.title,
        payload.description,
        payload.priority,
        payload.index,
    )
    return task_out(task)


@app.put("/api/boards/{alias}/tasks", response_model=TaskMoved)
def move_task(
    payload: TaskMove,
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    task = store.move_task(
        board,
        check_task_id(payload.taskId),
        payload.sourceColumnId,
        payload.destinationColumnId,
        payload.destinationIndex,
    )
    return TaskMoved(task=task_out(task))


@app.patch("/api/boards/{alias}/tasks/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    payload: TaskUpdate,
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    task = store.update_task(
        board,
        check_task_id(task_id),
        payload.title,
        payload.description,
        payload.priority,
    )
    return task_out(task)


@app.delete("/api/boards/{alias}/tasks/{task_id}", response_model=Success)
def delete_task(
    task_id: str,
    board: Board = Depends(editable_board),
    store: BoardStore = Depends(get_store),
):
    store.delete_task(board, check_task_id(task_id))
    return Success()
