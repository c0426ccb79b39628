"""Dense position bookkeeping for tasks inside a column.

Every function takes lists already ordered by position and returns the new
order; ``renumber`` then writes ``position = index`` back onto the items.
After any of these, a column's positions are exactly ``0..n-1``.
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence, TypeVar

from .errors import NotFoundError


class Positioned(Protocol):
    id: str
    position: int


T = TypeVar("T", bound=Positioned)


def clamp_index(index: Optional[int], count: int) -> int:
    """Clamp ``index`` into ``[0, count]``; ``None`` means append."""
    if index is None:
        return count
    return max(0, min(index, count))


def renumber(items: Sequence[T]) -> list[T]:
    """Set each item's position to its index. Returns the items that changed."""
    changed: list[T] = []
    for i, item in enumerate(items):
        if item.position != i:
            item.position = i
            changed.append(item)
    return changed


def _index_of(items: Sequence[T], item_id: str) -> int:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    raise NotFoundError("Task not found", {"taskId": item_id})


def insert(items: Sequence[T], item: T, index: Optional[int] = None) -> list[T]:
    ordered = [i for i in items if i.id != item.id]
    ordered.insert(clamp_index(index, len(ordered)), item)
    renumber(ordered)
    return ordered


def remove(items: Sequence[T], item_id: str) -> tuple[T, list[T]]:
    """Drop ``item_id`` from ``items``; returns the removed item and the rest."""
    ordered = list(items)
    removed = ordered.pop(_index_of(ordered, item_id))
    renumber(ordered)
    return removed, ordered


def move(
    source: Sequence[T],
    destination: Optional[Sequence[T]],
    item_id: str,
    index: int,
) -> tuple[list[T], list[T]]:
    """Move ``item_id`` out of ``source`` into ``destination`` at ``index``.

    Pass ``destination=None`` to reorder within ``source``; the two returned
    lists are then the same list.
    """
    item, rest = remove(source, item_id)
    if destination is None:
        ordered = insert(rest, item, index)
        return ordered, ordered
    return rest, insert(destination, item, index)
