from __future__ import annotations

import json
from typing import Any, Iterator

import pytest

from tierboard.board import BoardStore
from tierboard.hub import ServerHub, Session


class FakeSocket:
    """sendall로 보낸 JSON line을 기록하는 소켓 대역."""

    def __init__(self, *, fail_send: bool = False) -> None:
        self.sent = bytearray()
        self.closed = False
        self.fail_send = fail_send
        self.timeout: float | None = None

    def settimeout(self, value: float | None) -> None:
        self.timeout = value

    def sendall(self, data: bytes) -> None:
        if self.fail_send or self.closed:
            raise BrokenPipeError("peer gone")
        self.sent.extend(data)

    def shutdown(self, _how: int) -> None:
        if self.closed:
            raise OSError("already closed")

    def close(self) -> None:
        self.closed = True

    def events(self) -> list[dict[str, Any]]:
        return [json.loads(line) for line in self.sent.decode("utf-8").splitlines() if line]

    def events_of(self, ev: str) -> list[dict[str, Any]]:
        return [e for e in self.events() if e.get("ev") == ev]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def store() -> BoardStore:
    return BoardStore()


@pytest.fixture
def hub(store: BoardStore) -> Iterator[ServerHub]:
    server_hub = ServerHub(store, heartbeat_timeout=0, watchdog_interval=0.05)
    yield server_hub
    server_hub.shutdown()


@pytest.fixture
def connect(hub: ServerHub):
    port = iter(range(40000, 41000))

    def _connect(**socket_kwargs: Any) -> tuple[Session, FakeSocket]:
        sock = FakeSocket(**socket_kwargs)
        session = hub.new_session(sock, ("127.0.0.1", next(port)))  # type: ignore[arg-type]
        hub.join(session)
        return session, sock

    return _connect
