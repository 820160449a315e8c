# apps/board/positions.py

"""
Sibling-scoped integer positions for drag-and-drop ordering

Positions are spaced by POSITION_STEP so a single task can be dropped
between two neighbours without renumbering the column. When two
neighbours end up adjacent (gap < 2) the column is renumbered.
"""

from collections import namedtuple
from typing import Iterable, List, Optional

from django.conf import settings

POSITION_STEP = getattr(settings, 'TASKBOARD_POSITION_STEP', 1000)

PositionUpdate = namedtuple('PositionUpdate', ['id', 'position'])


def reindex(ordered_ids: Iterable) -> List[PositionUpdate]:
    """
    Assigns index * POSITION_STEP to every id in its new order

    Duplicated ids keep their first slot only.
    """
    seen = set()
    updates = []
    for item_id in ordered_ids:
        if item_id in seen:
            continue
        seen.add(item_id)
        updates.append(PositionUpdate(item_id, len(updates) * POSITION_STEP))
    return updates


def next_position(max_position: Optional[int]) -> int:
    """Position for an item appended after max_position (None = empty column)"""
    if max_position is None:
        return 0
    return max_position + POSITION_STEP


def position_between(before: Optional[int], after: Optional[int]) -> Optional[int]:
    """
    Integer strictly between two neighbours

    Returns None when there is no room left and the siblings
    need a full renumbering pass.
    """
    if before is None and after is None:
        return 0
    if before is None:
        return after - POSITION_STEP
    if after is None:
        return before + POSITION_STEP
    if after - before < 2:
        return None
    return (before + after) // 2
