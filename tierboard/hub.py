"""세션 릴레이: 접속/변경 메시지 라우팅과 브로드캐스트."""

from __future__ import annotations

import logging
import socket
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

from .board import BoardStore, BoardValidationError
from .protocol import (
    EV_ERROR,
    EV_INITIAL_DATA,
    EV_ITEM_ADDED,
    EV_PONG,
    EV_TIER_UPDATED,
    EV_USER_COUNT,
    OP_ADD_ITEM,
    OP_PING,
    OP_UPDATE_TIER,
    ProtocolError,
    encode_message,
    make_event,
)

LOGGER = logging.getLogger(__name__)

JOINING = "JOINING"
ACTIVE = "ACTIVE"
CLOSED = "CLOSED"

DEFAULT_SEND_TIMEOUT = 5.0


class Session:
    """TCP 세션 상태. JOINING -> ACTIVE -> CLOSED."""

    def __init__(
        self,
        sid: str,
        sock: socket.socket,
        addr: tuple[str, int],
        *,
        send_timeout: Optional[float] = None,
    ):
        self.id = sid
        self.socket = sock
        self.addr = addr
        self.state = JOINING
        self.send_timeout = send_timeout
        self._writer_lock = threading.Lock()
        self.last_seen = time.monotonic()
        if send_timeout:
            # 읽지 않는 상대에게 sendall이 무한정 막히지 않도록
            sock.settimeout(send_timeout)

    @property
    def alive(self) -> bool:
        return self.state != CLOSED

    @property
    def active(self) -> bool:
        return self.state == ACTIVE

    def send(self, payload: Dict[str, object]) -> None:
        if not self.alive:
            raise ConnectionError("session closed")
        data = encode_message(payload)
        if not self._writer_lock.acquire(timeout=self.send_timeout or -1):
            raise ConnectionError("writer busy")
        try:
            self.socket.sendall(data)
        except OSError as exc:
            raise ConnectionError("send failed") from exc
        finally:
            self._writer_lock.release()

    def close(self) -> None:
        self.state = CLOSED
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        finally:
            try:
                self.socket.close()
            except OSError:
                pass

    def touch(self) -> None:
        self.last_seen = time.monotonic()


class ServerHub:
    """보드 저장소와 활성 세션 목록 사이의 메시지 릴레이.

    ``_relay_lock``은 저장소 변경과 전송 대상 스냅샷에만 잡고, 실제 전송은
    락을 놓은 뒤 수행한다. 전송에 실패한 세션은 브로드캐스트가 끝난 뒤
    등록 해제한다.
    """

    def __init__(
        self,
        store: BoardStore,
        *,
        heartbeat_timeout: int = 120,
        watchdog_interval: float = 10.0,
        send_timeout: Optional[float] = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self.store = store
        self.heartbeat_timeout = heartbeat_timeout
        self.watchdog_interval = watchdog_interval
        self.send_timeout = send_timeout
        self.sessions: Dict[str, Session] = {}
        self._relay_lock = threading.RLock()
        self._stop_event = threading.Event()
        self._watchdog_thread = threading.Thread(target=self._watchdog_loop, daemon=True)
        self._watchdog_thread.start()

    # ---------- 세션 관리 ----------
    def new_session(self, sock: socket.socket, addr: tuple[str, int]) -> Session:
        sid = f"S-{uuid.uuid4().hex[:8]}"
        session = Session(sid, sock, addr, send_timeout=self.send_timeout)
        with self._relay_lock:
            self.sessions[sid] = session
        LOGGER.debug("session accepted: %s %s", sid, addr)
        return session

    def join(self, session: Session) -> None:
        """세션을 ACTIVE로 전환하고 현재 보드/접속자 수를 알린다."""
        with self._relay_lock:
            if session.state != JOINING or session.id not in self.sessions:
                return
            session.state = ACTIVE
            count = self.store.connect()
            board = self.store.get_state()
            targets = self.active_sessions()
        LOGGER.info("user connected: %s %s (users=%d)", session.id, session.addr, count)

        failed = self._send_all([session], make_event(EV_INITIAL_DATA, tierData=board))
        failed += self._send_all(targets, make_event(EV_USER_COUNT, count=count))
        self._drop(failed)

    def unregister_session(self, session: Session) -> None:
        with self._relay_lock:
            registered = self.sessions.pop(session.id, None) is not None
            was_active = session.active
            session.close()
            if not registered:
                return
            if not was_active:
                LOGGER.debug("session closed before join: %s", session.id)
                return
            count = self.store.disconnect()
            targets = self.active_sessions()
        LOGGER.info("user disconnected: %s (users=%d)", session.id, count)
        self._drop(self._send_all(targets, make_event(EV_USER_COUNT, count=count)))

    def active_sessions(self) -> List[Session]:
        with self._relay_lock:
            return [s for s in self.sessions.values() if s.active]

    # ---------- 라우팅 ----------
    def route_message(self, session: Session, message: Dict[str, Any]) -> None:
        session.touch()
        op = message.get("op")
        if op == OP_UPDATE_TIER:
            self._handle_update_tier(session, message)
        elif op == OP_ADD_ITEM:
            self._handle_add_item(session, message)
        elif op == OP_PING:
            self._safe_send(session, make_event(EV_PONG))
        else:
            LOGGER.warning("unknown op dropped: session=%s op=%r", session.id, op)

    def _handle_update_tier(self, session: Session, message: Dict[str, Any]) -> None:
        with self._relay_lock:
            if not session.active:
                LOGGER.debug("updateTier ignored, session not active: %s", session.id)
                return
            try:
                board = self.store.replace_state(message.get("tierData"))
            except BoardValidationError as exc:
                # 요청자에게는 응답하지 않는다.
                LOGGER.warning("updateTier rejected: session=%s code=%s %s", session.id, exc.code, exc)
                return
            targets = self.active_sessions()
        LOGGER.info("tier board updated by %s", session.id)
        self._drop(self._send_all(targets, make_event(EV_TIER_UPDATED, tierData=board), exclude=session.id))

    def _handle_add_item(self, session: Session, message: Dict[str, Any]) -> None:
        with self._relay_lock:
            if not session.active:
                LOGGER.debug("addItem ignored, session not active: %s", session.id)
                return
            try:
                item = self.store.append_item(message.get("item"))
            except BoardValidationError as exc:
                LOGGER.warning("addItem rejected: session=%s code=%s %s", session.id, exc.code, exc)
                return
            targets = self.active_sessions()
        LOGGER.info("item added by %s: %s", session.id, item["name"])
        self._drop(self._send_all(targets, make_event(EV_ITEM_ADDED, item=item)))

    # ---------- 헬퍼 ----------
    def broadcast(self, payload: Dict[str, object], *, exclude: Optional[str] = None) -> None:
        """활성 세션 전체(exclude 제외)에 이벤트 전송."""
        self._drop(self._send_all(self.active_sessions(), payload, exclude=exclude))

    def _send_all(
        self,
        targets: Iterable[Session],
        payload: Dict[str, object],
        *,
        exclude: Optional[str] = None,
    ) -> List[Session]:
        """대상에게 전송하고 실패한 세션 목록을 반환. 등록 해제는 호출자 몫."""
        failed: List[Session] = []
        for session in targets:
            if session.id == exclude or not session.alive:
                continue
            try:
                session.send(payload)
            except ConnectionError as exc:
                LOGGER.info("send to %s failed: %s", session.id, exc)
                failed.append(session)
            except ProtocolError as exc:
                LOGGER.error("protocol encode failed: %s", exc)
        return failed

    def _drop(self, sessions: Iterable[Session]) -> None:
        seen = set()
        for session in sessions:
            if session.id in seen:
                continue
            seen.add(session.id)
            self.unregister_session(session)

    def _safe_send(self, session: Session, payload: Dict[str, object]) -> None:
        self._drop(self._send_all([session], payload))

    def send_error(self, session: Session, code: str, **extra: object) -> None:
        payload = make_event(EV_ERROR, code=code)
        payload.update(extra)
        self._safe_send(session, payload)

    # ---------- 워치독 ----------
    def _watchdog_loop(self) -> None:
        while not self._stop_event.wait(self.watchdog_interval):
            if not self.heartbeat_timeout:
                continue
            now = time.monotonic()
            with self._relay_lock:
                stale = [
                    s
                    for s in self.sessions.values()
                    if not s.alive or now - s.last_seen > self.heartbeat_timeout
                ]
            for session in stale:
                LOGGER.info("session timeout: %s", session.id)
                self.unregister_session(session)

    def shutdown(self) -> None:
        self._stop_event.set()
        self._watchdog_thread.join(timeout=1.0)
        with self._relay_lock:
            sessions = list(self.sessions.values())
        for session in sessions:
            self.unregister_session(session)


__all__ = [
    "ACTIVE",
    "CLOSED",
    "DEFAULT_SEND_TIMEOUT",
    "JOINING",
    "ServerHub",
    "Session",
]
