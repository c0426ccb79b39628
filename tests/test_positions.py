from dataclasses import dataclass

import pytest

from nokn import positions
from nokn.errors import NotFoundError


@dataclass
class Item:
    id: str
    position: int


def column(*ids: str) -> list[Item]:
    return [Item(i, n) for n, i in enumerate(ids)]


def ids(items) -> list[str]:
    return [i.id for i in items]


def assert_dense(items) -> None:
    assert [i.position for i in items] == list(range(len(items)))


def test_clamp_index():
    assert positions.clamp_index(None, 3) == 3
    assert positions.clamp_index(-4, 3) == 0
    assert positions.clamp_index(10, 3) == 3
    assert positions.clamp_index(1, 3) == 1


def test_renumber_reports_only_changed_items():
    items = [Item("a", 0), Item("b", 5), Item("c", 2)]
    changed = positions.renumber(items)
    assert ids(changed) == ["b"]
    assert_dense(items)


@pytest.mark.parametrize(
    "index, expected",
    [(0, ["n", "a", "b"]), (1, ["a", "n", "b"]), (None, ["a", "b", "n"]), (99, ["a", "b", "n"])],
)
def test_insert(index, expected):
    result = positions.insert(column("a", "b"), Item("n", 0), index)
    assert ids(result) == expected
    assert_dense(result)


def test_remove_renumbers_rest():
    removed, rest = positions.remove(column("a", "b", "c"), "a")
    assert removed.id == "a"
    assert ids(rest) == ["b", "c"]
    assert_dense(rest)


def test_remove_last_task_empties_column():
    _, rest = positions.remove(column("a"), "a")
    assert rest == []
    assert positions.insert(rest, Item("n", 7))[0].position == 0


def test_move_within_column():
    source, destination = positions.move(column("a", "b", "c"), None, "a", 2)
    assert source is destination
    assert ids(source) == ["b", "c", "a"]
    assert_dense(source)


def test_move_between_columns():
    source, destination = positions.move(column("a", "b", "c"), column("x", "y"), "b", 1)
    assert ids(source) == ["a", "c"]
    assert ids(destination) == ["x", "b", "y"]
    assert_dense(source)
    assert_dense(destination)


def test_move_unknown_task():
    with pytest.raises(NotFoundError):
        positions.move(column("a"), column("x"), "zzz", 0)
