"""JSON line 기반 티어 보드 메시지 프레이밍/직렬화."""

from __future__ import annotations

import json
from typing import Any, Dict, List

MAX_MESSAGE_BYTES = 1_000_000  # 1MB 제한

# client -> server
OP_UPDATE_TIER = "updateTier"
OP_ADD_ITEM = "addItem"
OP_PING = "ping"

# server -> client
EV_INITIAL_DATA = "initialData"
EV_USER_COUNT = "userCountUpdate"
EV_TIER_UPDATED = "tierUpdated"
EV_ITEM_ADDED = "itemAdded"
EV_PONG = "pong"
EV_ERROR = "error"


class ProtocolError(Exception):
    """프레이밍/파싱 중 발생하는 예외."""


class JsonLineFramer:
    """TCP 스트림을 JSON line 단위로 분리하는 헬퍼."""

    def __init__(self, *, max_message_bytes: int = MAX_MESSAGE_BYTES) -> None:
        self._buffer = bytearray()
        self._max_message_bytes = max_message_bytes

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        """새 바이트 청크를 넣고 완성된 메시지들을 반환."""
        if not chunk:
            return []
        self._buffer.extend(chunk)

        messages: List[Dict[str, Any]] = []
        while True:
            newline_index = self._buffer.find(b"\n")
            if newline_index == -1:
                break
            line = bytes(self._buffer[:newline_index]).strip()
            del self._buffer[: newline_index + 1]
            if line:
                messages.append(parse_json_line(line))
        # 줄바꿈 없이 쌓이기만 하는 입력 차단
        if len(self._buffer) > self._max_message_bytes:
            raise ProtocolError("message exceeds max size")
        return messages


def parse_json_line(line: bytes) -> Dict[str, Any]:
    """단일 JSON line을 dict로 파싱."""
    try:
        message = json.loads(line.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"bad json: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolError("message must be object")
    return message


def encode_message(obj: Dict[str, Any]) -> bytes:
    """dict를 JSON line 바이트로 직렬화."""
    try:
        payload = json.dumps(obj, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise ProtocolError(f"cannot encode message: {exc}") from exc
    return (payload + "\n").encode("utf-8")


def make_event(ev: str, **fields: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"ev": ev}
    payload.update(fields)
    return payload


__all__ = [
    "EV_ERROR",
    "EV_INITIAL_DATA",
    "EV_ITEM_ADDED",
    "EV_PONG",
    "EV_TIER_UPDATED",
    "EV_USER_COUNT",
    "JsonLineFramer",
    "OP_ADD_ITEM",
    "OP_PING",
    "OP_UPDATE_TIER",
    "ProtocolError",
    "encode_message",
    "make_event",
    "parse_json_line",
]
