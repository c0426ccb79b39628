import logging
from typing import Optional

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from .db import Board, get_db
from .errors import ForbiddenError
from .storage import BoardStore
from .utils import password_matches

logger = logging.getLogger(__name__)


def get_store(db: Session = Depends(get_db)) -> BoardStore:
    return BoardStore(db)


def authorize_edit(board: Board, password: Optional[str]) -> None:
    """Password gate for mutating requests.

    Boards without an edit password are writable by anyone who knows the
    alias. Otherwise the caller must send the matching password; a missing or
    wrong one is refused outright rather than treated as read-only.
    """
    if not board.edit_password:
        return
    if not password:
        logger.warning("Edit without password refused for board %s", board.alias)
        raise ForbiddenError("Password required to modify this board")
    if not password_matches(board.edit_password, password):
        logger.warning("Wrong password for board %s", board.alias)
        raise ForbiddenError("Invalid password for board modification")


def editable_board(
    alias: str,
    pwd: Optional[str] = Query(default=None),
    store: BoardStore = Depends(get_store),
) -> Board:
    board = store.get_board(alias)
    authorize_edit(board, pwd)
    return board
