import pytest

from mailtrack.reorder import move_item, reindex


def test_reindex_assigns_index_as_position():
    assert reindex(["c", "a", "b"]) == [("c", 0), ("a", 1), ("b", 2)]
    assert reindex([]) == []


def test_reindex_rejects_duplicates():
    with pytest.raises(ValueError):
        reindex(["a", "b", "a"])


@pytest.mark.parametrize(
    "from_index, to_index, expected",
    [
        (0, 2, ["b", "c", "a", "d"]),
        (3, 0, ["d", "a", "b", "c"]),
        (1, 1, ["a", "b", "c", "d"]),
        (0, 99, ["b", "c", "d", "a"]),
        (2, -5, ["c", "a", "b", "d"]),
    ],
)
def test_move_item(from_index, to_index, expected):
    items = ["a", "b", "c", "d"]
    assert move_item(items, from_index, to_index) == expected
    assert items == ["a", "b", "c", "d"]


def test_move_item_requires_existing_source():
    with pytest.raises(IndexError):
        move_item(["a"], 1, 0)
