# tests/helpers.py
"""
Test helpers shared by the socket and interface tests.
"""

import socket
import threading
import time
from typing import Callable, List

VT, FS, CR = b"\x0b", b"\x1c", b"\r"

ADT_A01 = (
    "MSH|^~\\&|A|B|C|D|20230101120000||ADT^A01|MSG001|P|2.3\r"
    "PID|1||12345"
)


def frame(text: str) -> bytes:
    return VT + text.encode("utf-8") + FS + CR


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return bool(predicate())


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def recv_frame(sock: socket.socket, timeout: float = 5.0) -> bytes:
    """Read from ``sock`` until one complete MLLP frame has arrived."""
    sock.settimeout(timeout)
    data = b""
    while FS + CR not in data:
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


class Recorder:
    """Callable that records every payload it is called with."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: List[object] = []

    def __call__(self, item: object) -> None:
        with self._lock:
            self._items.append(item)

    @property
    def items(self) -> List[object]:
        with self._lock:
            return list(self._items)

    def texts(self) -> List[str]:
        return [str(item) for item in self.items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
