"""티어 보드 TCP 서버 진입점."""

from __future__ import annotations

import argparse
import logging
import os
import socket
import threading

from .board import BoardStore
from .hub import DEFAULT_SEND_TIMEOUT, ServerHub, Session
from .protocol import JsonLineFramer, ProtocolError

DEFAULT_PORT = 3000


def default_port() -> int:
    value = os.environ.get("PORT", "")
    try:
        return int(value) if value else DEFAULT_PORT
    except ValueError:
        logging.warning("invalid PORT env %r, using %d", value, DEFAULT_PORT)
        return DEFAULT_PORT


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Shared Tier Board - Server")
    parser.add_argument("--host", default="0.0.0.0", help="서버 바인드 호스트 (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=default_port(), help="서버 포트 (default: $PORT 또는 3000)")
    parser.add_argument("--backlog", type=int, default=128, help="listen backlog 크기")
    parser.add_argument("--heartbeat-timeout", type=int, default=120, help="세션 타임아웃(초), 0이면 끔")
    parser.add_argument(
        "--send-timeout", type=float, default=DEFAULT_SEND_TIMEOUT, help="세션별 송신 타임아웃(초), 0이면 끔"
    )
    parser.add_argument("--log-level", default="INFO", help="로그 레벨 (DEBUG/INFO/...)")
    return parser.parse_args(argv)


def client_worker(hub: ServerHub, session: Session) -> None:
    framer = JsonLineFramer()
    sock = session.socket
    try:
        hub.join(session)
        while session.alive:
            try:
                chunk = sock.recv(4096)
            except socket.timeout:
                # 송신 타임아웃이 수신에도 걸리므로 유휴 상태면 계속 대기
                continue
            if not chunk:
                break
            try:
                messages = framer.feed(chunk)
            except ProtocolError as exc:
                logging.warning("bad message from %s: %s", session.id, exc)
                hub.send_error(session, "BAD_JSON", hint=str(exc))
                break
            for msg in messages:
                hub.route_message(session, msg)
    except (ConnectionError, OSError):
        pass
    except Exception:
        logging.exception("route_message failed: session=%s", session.id)
    finally:
        hub.unregister_session(session)


def run_server(args: argparse.Namespace) -> None:
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    hub = ServerHub(
        BoardStore(),
        heartbeat_timeout=args.heartbeat_timeout,
        send_timeout=args.send_timeout or None,
    )

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_sock:
        server_sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server_sock.bind((args.host, args.port))
        server_sock.listen(args.backlog)
        logging.info("TierBoard server listening on %s:%s", args.host, args.port)

        try:
            while True:
                conn, addr = server_sock.accept()
                conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
                session = hub.new_session(conn, addr)
                threading.Thread(target=client_worker, args=(hub, session), daemon=True).start()
        except KeyboardInterrupt:
            logging.info("KeyboardInterrupt → shutting down")
        finally:
            hub.shutdown()


def main() -> None:
    args = parse_args()
    run_server(args)


if __name__ == "__main__":
    main()
