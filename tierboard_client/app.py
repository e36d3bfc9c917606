#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
PyQt5 Shared Tier Board - Client
--------------------------------
기능 요약
- 서버(TCP)와 JSON-lines(한 줄에 한 메시지)로 통신
- 접속 직후 initialData 수신, userCountUpdate로 접속자 수 표시
- 티어(S/A/B/C/D/unranked) 리스트 간 드래그&드롭 → 로컬 이동 후 updateTier 전송
- 아이템 추가 → addItem 전송, 서버의 itemAdded 이벤트로 반영
- 주기적 ping으로 서버 세션 타임아웃 방지
"""

import json
import socket
import sys
import threading
from typing import Any, Dict, Optional

from PyQt5 import QtCore, QtWidgets

from .model import TIERS, Board, apply_event, empty_board, move_item, new_item

PING_INTERVAL_MS = 30_000
ITEM_ID_ROLE = QtCore.Qt.UserRole


# =====================
# 네트워크 워커
# =====================
class NetWorker(QtCore.QObject):
    connected = QtCore.pyqtSignal()
    disconnected = QtCore.pyqtSignal()
    error = QtCore.pyqtSignal(str)
    eventReceived = QtCore.pyqtSignal(dict)
    status = QtCore.pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self._sock: Optional[socket.socket] = None
        self._reader_thread: Optional[threading.Thread] = None
        self._writer_lock = threading.Lock()
        self._alive = False

    def connect_to(self, host: str, port: int, timeout=5.0) -> bool:
        if self._alive:
            self.error.emit("Already connected")
            return True
        try:
            self.status.emit(f"Connecting {host}:{port} ...")
            s = socket.create_connection((host, port), timeout=timeout)
            s.settimeout(None)
            self._sock = s
            self._alive = True
            self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
            self._reader_thread.start()
            self.connected.emit()
            self.status.emit("Connected")
            return True
        except OSError as e:
            self._alive = False
            self._sock = None
            self.error.emit(f"Connect failed: {e}")
            return False

    def close(self):
        if not self._alive and self._sock is None:
            return
        self._alive = False
        if self._sock:
            try:
                self._sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            try:
                self._sock.close()
            except OSError:
                pass
        self._sock = None
        self.disconnected.emit()
        self.status.emit("Disconnected")

    def _reader_loop(self):
        buf = b""
        try:
            while self._alive and self._sock:
                chunk = self._sock.recv(4096)
                if not chunk:
                    break
                buf += chunk
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        msg = json.loads(line.decode("utf-8"))
                    except (UnicodeDecodeError, json.JSONDecodeError) as e:
                        self.error.emit(f"Bad JSON: {e}")
                        continue
                    if isinstance(msg, dict):
                        self.eventReceived.emit(msg)
        except OSError as e:
            if self._alive:
                self.error.emit(f"Reader error: {e}")
        finally:
            self.close()

    def send_json(self, obj: Dict[str, Any]):
        if not self._sock:
            self.error.emit("Not connected")
            return
        data = (json.dumps(obj, ensure_ascii=False) + "\n").encode("utf-8")
        with self._writer_lock:
            try:
                self._sock.sendall(data)
            except OSError as e:
                self.error.emit(f"Send failed: {e}")


# =====================
# 티어 리스트 위젯
# =====================
class TierList(QtWidgets.QListWidget):
    """드롭을 직접 처리하지 않고 (아이템 id, 대상 티어)만 알리는 리스트."""

    itemDropped = QtCore.pyqtSignal(str, str)

    def __init__(self, tier: str, parent=None):
        super().__init__(parent)
        self.tier = tier
        self.setObjectName(f"tier-{tier}")
        self.setFlow(QtWidgets.QListView.LeftToRight)
        self.setWrapping(True)
        self.setSpacing(4)
        self.setMinimumHeight(64)
        self.setDragEnabled(True)
        self.setAcceptDrops(True)
        self.setDropIndicatorShown(True)
        self.setDragDropMode(QtWidgets.QAbstractItemView.DragDrop)
        self.setDefaultDropAction(QtCore.Qt.MoveAction)

    def dragEnterEvent(self, event):
        if isinstance(event.source(), TierList):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dragMoveEvent(self, event):
        if isinstance(event.source(), TierList):
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event):
        source = event.source()
        dragged = source.currentItem() if isinstance(source, TierList) else None
        if dragged is None:
            event.ignore()
            return
        # 위젯 간 이동은 보드 데이터로만 처리하고 다시 그린다.
        event.setDropAction(QtCore.Qt.IgnoreAction)
        event.accept()
        self.itemDropped.emit(str(dragged.data(ITEM_ID_ROLE)), self.tier)


# =====================
# 메인 윈도우
# =====================
class MainWindow(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Shared Tier Board")
        self.resize(900, 600)

        self.worker = NetWorker()
        self.thread = QtCore.QThread(self)
        self.worker.moveToThread(self.thread)
        self.thread.start()

        self.board: Board = empty_board()
        self.tier_lists: Dict[str, TierList] = {}

        self._build_ui()

        self.ping_timer = QtCore.QTimer(self)
        self.ping_timer.setInterval(PING_INTERVAL_MS)
        self.ping_timer.timeout.connect(lambda: self.worker.send_json({"op": "ping"}))

        self.worker.connected.connect(self.on_connected)
        self.worker.disconnected.connect(self.on_disconnected)
        self.worker.error.connect(self.on_error)
        self.worker.eventReceived.connect(self.on_event)
        self.worker.status.connect(self.set_status)

    # ---------- UI ----------
    def _build_ui(self):
        central = QtWidgets.QWidget()
        layout = QtWidgets.QVBoxLayout(central)

        top = QtWidgets.QHBoxLayout()
        self.ed_host = QtWidgets.QLineEdit("127.0.0.1")
        self.ed_port = QtWidgets.QLineEdit("3000")
        self.btn_connect = QtWidgets.QPushButton("Connect")
        self.lbl_users = QtWidgets.QLabel("접속자: 0명")
        top.addWidget(QtWidgets.QLabel("Host:"))
        top.addWidget(self.ed_host)
        top.addWidget(QtWidgets.QLabel("Port:"))
        top.addWidget(self.ed_port)
        top.addWidget(self.btn_connect)
        top.addStretch(1)
        top.addWidget(self.lbl_users)
        layout.addLayout(top)

        grid = QtWidgets.QGridLayout()
        for row, tier in enumerate(TIERS):
            label = QtWidgets.QLabel(tier)
            label.setAlignment(QtCore.Qt.AlignCenter)
            label.setMinimumWidth(80)
            tier_list = TierList(tier)
            tier_list.itemDropped.connect(self.on_item_dropped)
            self.tier_lists[tier] = tier_list
            grid.addWidget(label, row, 0)
            grid.addWidget(tier_list, row, 1)
        layout.addLayout(grid)

        bottom = QtWidgets.QHBoxLayout()
        self.ed_item = QtWidgets.QLineEdit()
        self.ed_item.setPlaceholderText("새 아이템 이름")
        self.ed_item.setMaxLength(100)
        self.btn_add = QtWidgets.QPushButton("추가")
        bottom.addWidget(self.ed_item)
        bottom.addWidget(self.btn_add)
        layout.addLayout(bottom)

        self.setCentralWidget(central)
        self.status = QtWidgets.QStatusBar()
        self.setStatusBar(self.status)

        self.btn_connect.clicked.connect(self.ui_connect)
        self.btn_add.clicked.connect(self.ui_add_item)
        self.ed_item.returnPressed.connect(self.ui_add_item)

    def set_status(self, s: str):
        self.status.showMessage(s, 5000)

    def render_tiers(self):
        for tier, tier_list in self.tier_lists.items():
            tier_list.clear()
            for item in self.board.get(tier, []):
                widget_item = QtWidgets.QListWidgetItem(item.get("name", ""))
                widget_item.setData(ITEM_ID_ROLE, item.get("id"))
                tier_list.addItem(widget_item)

    # ---------- 연결 ----------
    @QtCore.pyqtSlot()
    def ui_connect(self):
        host = self.ed_host.text().strip()
        try:
            port = int(self.ed_port.text().strip() or 3000)
        except ValueError:
            self.set_status("Invalid port")
            return
        self.worker.connect_to(host, port)

    # ---------- 로컬 조작 → 전송 ----------
    @QtCore.pyqtSlot(str, str)
    def on_item_dropped(self, item_id: str, tier: str):
        if not move_item(self.board, item_id, tier):
            return
        self.worker.send_json({"op": "updateTier", "tierData": self.board})
        # 드래그 처리 중인 소스 위젯을 바로 비우지 않도록 다음 루프에서 갱신
        QtCore.QTimer.singleShot(0, self.render_tiers)

    @QtCore.pyqtSlot()
    def ui_add_item(self):
        item = new_item(self.ed_item.text())
        if item is None:
            return
        # 서버의 itemAdded 이벤트(요청자 포함)로 화면에 반영된다.
        self.worker.send_json({"op": "addItem", "item": item})
        self.ed_item.clear()

    # ---------- 이벤트 수신 ----------
    @QtCore.pyqtSlot()
    def on_connected(self):
        self.ping_timer.start()

    @QtCore.pyqtSlot()
    def on_disconnected(self):
        self.ping_timer.stop()
        self.lbl_users.setText("접속자: 0명")

    @QtCore.pyqtSlot(str)
    def on_error(self, err: str):
        self.set_status(f"Error: {err}")

    @QtCore.pyqtSlot(dict)
    def on_event(self, ev: Dict[str, Any]):
        et = ev.get("ev")
        if et == "userCountUpdate":
            self.lbl_users.setText(f"접속자: {ev.get('count', 0)}명")
        elif et in ("initialData", "tierUpdated", "itemAdded"):
            self.board = apply_event(self.board, ev)
            self.render_tiers()
        elif et == "error":
            self.set_status(f"Server error: {ev.get('code')}")

    def closeEvent(self, event):
        self.worker.close()
        self.thread.quit()
        self.thread.wait(1000)
        super().closeEvent(event)


# =====================
# 진입점
# =====================
def main():
    app = QtWidgets.QApplication(sys.argv)
    w = MainWindow()
    w.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
