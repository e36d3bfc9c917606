"""티어 보드 상태 관리 및 변경 검증 로직."""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Mapping

LOGGER = logging.getLogger(__name__)

TIERS = ("S", "A", "B", "C", "D", "unranked")
UNRANKED = "unranked"
MAX_NAME_LENGTH = 100
MAX_ID_LENGTH = 64
SEED_ITEM_COUNT = 8

Item = Dict[str, str]
Board = Dict[str, List[Item]]


class BoardValidationError(Exception):
    """보드/아이템 검증 실패."""

    code = "INVALID"


class MalformedPayload(BoardValidationError):
    code = "MALFORMED_PAYLOAD"


class MissingBucket(BoardValidationError):
    code = "MISSING_BUCKET"


class ItemTooLong(BoardValidationError):
    code = "ITEM_TOO_LONG"


def empty_board() -> Board:
    return {tier: [] for tier in TIERS}


def seed_board(count: int = SEED_ITEM_COUNT) -> Board:
    """서버 시작 시 unranked에 채워 두는 기본 아이템."""
    board = empty_board()
    board[UNRANKED] = [{"id": str(i), "name": f"아이템 {i}"} for i in range(1, count + 1)]
    return board


def validate_item(value: object) -> Item:
    """아이템 형태를 검사하고 id/name만 남긴 사본을 반환."""
    if not isinstance(value, Mapping):
        raise MalformedPayload("item must be an object")
    item_id = value.get("id")
    name = value.get("name")
    if not isinstance(item_id, str) or not item_id:
        raise MalformedPayload("item id must be a non-empty string")
    if len(item_id) > MAX_ID_LENGTH:
        raise MalformedPayload(f"item id longer than {MAX_ID_LENGTH}")
    if not isinstance(name, str):
        raise MalformedPayload("item name must be a string")
    if len(name) > MAX_NAME_LENGTH:
        raise ItemTooLong(f"item name longer than {MAX_NAME_LENGTH}: {len(name)}")
    return {"id": item_id, "name": name}


def validate_board(value: object) -> Board:
    """보드 전체를 검사하고 정규화된 사본을 반환. 원본은 건드리지 않는다."""
    if not isinstance(value, Mapping):
        raise MalformedPayload("tierData must be an object")
    keys = set(value.keys())
    missing = [tier for tier in TIERS if tier not in keys]
    if missing:
        raise MissingBucket(f"missing bucket(s): {', '.join(missing)}")
    extra = sorted(str(key) for key in keys - set(TIERS))
    if extra:
        raise MissingBucket(f"unexpected bucket(s): {', '.join(extra)}")

    board = empty_board()
    for tier in TIERS:
        items = value[tier]
        if not isinstance(items, (list, tuple)):
            raise MalformedPayload(f"bucket {tier} must be a list")
        board[tier] = [validate_item(item) for item in items]
    return board


class BoardStore:
    """공유 티어 보드와 접속자 수를 소유하는 저장소.

    서버 시작 시 한 번 만들어 허브에 넘긴다. 보드 변경은 검증을 통과한
    경우에만 반영되며, 실패 시 기존 보드는 그대로 남는다.
    """

    def __init__(self, board: Board | None = None) -> None:
        self._board: Board = validate_board(board) if board is not None else seed_board()
        self._user_count = 0
        self._lock = threading.Lock()

    @property
    def user_count(self) -> int:
        with self._lock:
            return self._user_count

    def get_state(self) -> Board:
        with self._lock:
            return copy.deepcopy(self._board)

    def replace_state(self, new_board: Any) -> Board:
        board = validate_board(new_board)
        with self._lock:
            self._board = board
            return copy.deepcopy(board)

    def append_item(self, item: Any) -> Item:
        # id 중복은 검사하지 않는다.
        stored = validate_item(item)
        with self._lock:
            self._board[UNRANKED].append(stored)
        return dict(stored)

    def connect(self) -> int:
        with self._lock:
            self._user_count += 1
            return self._user_count

    def disconnect(self) -> int:
        with self._lock:
            if self._user_count == 0:
                LOGGER.warning("disconnect with no connected users")
                return 0
            self._user_count -= 1
            return self._user_count


__all__ = [
    "Board",
    "BoardStore",
    "BoardValidationError",
    "Item",
    "ItemTooLong",
    "MAX_ID_LENGTH",
    "MAX_NAME_LENGTH",
    "MalformedPayload",
    "MissingBucket",
    "TIERS",
    "UNRANKED",
    "empty_board",
    "seed_board",
    "validate_board",
    "validate_item",
]
