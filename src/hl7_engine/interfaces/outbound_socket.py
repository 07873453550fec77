# src/hl7_engine/interfaces/outbound_socket.py
"""
Outbound MLLP socket interface.

Messages are queued in FIFO order and delivered by one worker thread. The
head of the queue is only removed once the endpoint answers with a positive
acknowledgement; on any failure the same head is retried after
``retry_delay``, so delivery is at-least-once and strictly ordered.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections import deque
from typing import Deque, Optional, Union

from ..ack import is_positive_acknowledgement
from ..config import InterfaceConfig
from ..exceptions import ConnectivityError, DeliveryError, QueueFullError
from ..mllp import FrameBuffer
from ..model import Message, normalize_line_endings
from .base import BaseInterface
from .inbound_socket import RECV_SIZE, close_socket, is_socket_connected
from .registry import register

LOG = logging.getLogger(__name__)

DEFAULT_OUTBOUND_HOST = "127.0.0.1"


@register("outbound-socket")
class OutboundSocketInterface(BaseInterface):
    """
    Deliver queued HL7 messages to a remote MLLP listener.

    Parameters
    ----------
    config : InterfaceConfig or None
        ``host``/``port`` select the endpoint; timeouts and delays come from
        ``send_timeout``, ``receive_timeout``, ``connect_timeout``,
        ``retry_delay`` and ``idle_delay``.
    name : str or None
        Overrides ``config.name``.
    """

    kind = "outbound-socket"

    def __init__(
        self, config: Optional[InterfaceConfig] = None, name: Optional[str] = None
    ) -> None:
        super().__init__(config, name)
        self.host = self.config.host or DEFAULT_OUTBOUND_HOST
        self.port = self.config.port
        self._queue: Deque[Message] = deque()
        self._queue_lock = threading.Lock()
        self._drained = threading.Condition(self._queue_lock)
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

    # --------------------------------------------------------------------------
    # queue
    # --------------------------------------------------------------------------

    def enqueue_message(self, message: Union[Message, str]) -> None:
        """
        Add a message to the tail of the delivery queue.

        Raises
        ------
        QueueFullError
            If ``max_queue_size`` messages are already pending.
        TypeError
            If message is neither a Message nor a string.
        """
        if isinstance(message, str):
            message = Message.parse(normalize_line_endings(message))
        if not isinstance(message, Message):
            raise TypeError(
                f"message must be Message or str, got {type(message).__name__}"
            )
        limit = self.config.max_queue_size
        with self._queue_lock:
            if limit and len(self._queue) >= limit:
                raise QueueFullError(
                    f"Outbound queue of {self.name!r} is full ({limit} messages)"
                )
            self._queue.append(message)

    def peek(self) -> Optional[Message]:
        with self._queue_lock:
            return self._queue[0] if self._queue else None

    def pending(self) -> int:
        with self._queue_lock:
            return len(self._queue)

    def wait_until_drained(self, timeout: Optional[float] = None) -> bool:
        """Block until the queue is empty; returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._drained:
            while self._queue:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._drained.wait(remaining)
            return True

    def _pop_head(self, expected: Message) -> None:
        with self._drained:
            if self._queue and self._queue[0] is expected:
                self._queue.popleft()
            if not self._queue:
                self._drained.notify_all()

    # --------------------------------------------------------------------------
    # lifecycle
    # --------------------------------------------------------------------------

    def _on_start(self) -> bool:
        self._thread = self._spawn(self._process_messages)
        return True

    def _on_stop(self) -> bool:
        # wakes a worker blocked on send/recv
        self._discard_socket()
        self._join(self._thread)
        self._thread = None
        return True

    # --------------------------------------------------------------------------
    # worker loop
    # --------------------------------------------------------------------------

    def _process_messages(self, cancel: threading.Event) -> None:
        connection_error_shown = False
        while not cancel.is_set():
            try:
                message = self.peek()
                if message is not None:
                    if self._send(message):
                        self._pop_head(message)
                        connection_error_shown = False
                        self.write_message(message)
                        if self.log_messages:
                            self.write_status(message.serialize())
                    else:
                        if cancel.is_set():
                            break
                        self.write_error(DeliveryError("Failure sending HL7 message"))
                        if not connection_error_shown:
                            connection_error_shown = True
                            self.write_error(
                                ConnectivityError(
                                    "Failure connecting to HL7 endpoint "
                                    f"{self.host}:{self.port}"
                                )
                            )
                        cancel.wait(self.config.retry_delay)
            except Exception as e:
                self.write_error(e)

            if self.pending() == 0:
                cancel.wait(self.config.idle_delay)

        self._discard_socket()

    def _send(self, message: Message) -> bool:
        """
        Deliver one message and wait for its acknowledgement.

        Returns
        -------
        bool
            True if the reply contains the ``MSA|AA`` acceptance marker.
        """
        frame = self.codec.wrap(message)
        reused = self._socket is not None
        if reused and not is_socket_connected(self._socket):
            self._discard_socket()
            reused = False

        reply = self._exchange(frame)
        if reply is None and reused and not self._cancel.is_set():
            # the peer closed the kept connection after its last reply
            reply = self._exchange(frame)
        return reply is not None and is_positive_acknowledgement(reply)

    def _exchange(self, frame: bytes) -> Optional[str]:
        """Send one frame and return the decoded reply, or None on failure."""
        try:
            if self._socket is None:
                self._socket = self._connect()
            if self._socket is None:
                return None

            sock = self._socket
            sock.settimeout(self.config.send_timeout)
            sock.sendall(frame)

            sock.settimeout(self.config.receive_timeout)
            reply = self._receive_reply(sock)
        except OSError as e:
            LOG.debug("[%s] delivery to %s:%s failed: %s", self.name, self.host, self.port, e)
            self._discard_socket()
            return None

        if reply is None or not is_socket_connected(sock):
            # closed by the peer; never reuse it
            self._discard_socket()
        return reply

    def _receive_reply(self, sock: socket.socket) -> Optional[str]:
        """Read until one complete frame arrives or the peer closes."""
        frames = FrameBuffer(self.codec)
        received = b""
        while True:
            chunk = sock.recv(RECV_SIZE)
            if not chunk:
                return self.codec.decode(received) if received else None
            received += chunk
            payloads = frames.feed(chunk)
            if payloads:
                return self.codec.decode(payloads[0])

    def _connect(self) -> Optional[socket.socket]:
        try:
            return socket.create_connection(
                (self.host, self.port), timeout=self.config.connect_timeout
            )
        except OSError as e:
            LOG.debug("[%s] cannot connect to %s:%s: %s", self.name, self.host, self.port, e)
            return None

    def _discard_socket(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            close_socket(sock)
