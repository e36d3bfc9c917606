"""클라이언트 측 티어 보드 조작 유틸 (Qt 비의존)."""

from __future__ import annotations

import copy
import time
from typing import Any, Dict, Optional

from tierboard.board import MAX_NAME_LENGTH, TIERS, UNRANKED, Board, empty_board


def new_item(name: str, *, now: Optional[float] = None) -> Optional[Dict[str, str]]:
    """입력된 이름으로 새 아이템 생성. 빈 이름이면 None."""
    name = name.strip()
    if not name:
        return None
    stamp = time.time() if now is None else now
    return {"id": str(int(stamp * 1000)), "name": name[:MAX_NAME_LENGTH]}


def move_item(board: Board, item_id: str, tier: str) -> bool:
    """아이템을 현재 티어에서 빼서 대상 티어 끝에 붙인다."""
    if tier not in board:
        return False
    for items in board.values():
        for index, item in enumerate(items):
            if item.get("id") == item_id:
                board[tier].append(items.pop(index))
                return True
    return False


def apply_event(board: Board, ev: Dict[str, Any]) -> Board:
    """서버 이벤트를 반영한 보드를 반환."""
    et = ev.get("ev")
    if et in ("initialData", "tierUpdated"):
        data = ev.get("tierData")
        if isinstance(data, dict):
            merged = empty_board()
            merged.update(copy.deepcopy(data))
            return merged
        return board
    if et == "itemAdded":
        item = ev.get("item")
        if isinstance(item, dict):
            board.setdefault(UNRANKED, []).append(dict(item))
    return board


__all__ = [
    "Board",
    "TIERS",
    "UNRANKED",
    "apply_event",
    "empty_board",
    "move_item",
    "new_item",
]
