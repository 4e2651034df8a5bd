"""Ordered-list helpers shared by the repository layer and the dashboard model."""

from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def reindex(ids: Sequence[str]) -> List[Tuple[str, int]]:
    """
    Assign contiguous zero-based positions following the given order.

    Args:
        ids (Sequence[str]): Identifiers in their new display order.

    Raises:
        ValueError: If an identifier appears more than once.

    Returns:
        list[tuple[str, int]]: ``(id, position)`` pairs.
    """
    seen = set()
    for item_id in ids:
        if item_id in seen:
            raise ValueError(f"Duplicate id in reorder request: {item_id}")
        seen.add(item_id)
    return [(item_id, index) for index, item_id in enumerate(ids)]


def move_item(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """
    Move one element to a new slot and return the new order.

    The target index is clamped to ``[0, len]`` after the element has been
    removed, so dropping past either end appends or prepends.

    Raises:
        IndexError: If ``from_index`` does not address an element.
    """
    if not 0 <= from_index < len(items):
        raise IndexError(f"from_index {from_index} out of range")
    result = list(items)
    moved = result.pop(from_index)
    to_index = max(0, min(to_index, len(result)))
    result.insert(to_index, moved)
    return result
