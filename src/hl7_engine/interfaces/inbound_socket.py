# src/hl7_engine/interfaces/inbound_socket.py
"""
Inbound MLLP socket interface.

Listens on a TCP port and serves one connection at a time: frames are
pulled out of the receive stream in arrival order, parsed, dispatched on
the message channel and answered with an ACK on the same connection. When
the connection dies, errors or (in non-persistent mode) completes one
exchange, the interface goes back to accepting.

States: stopped -> accepting -> connected -> processing -> connected or
closing -> accepting or stopped.
"""

from __future__ import annotations

import errno
import logging
import select
import socket
import threading
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from ..config import InterfaceConfig
from ..exceptions import ListenerBindError, MalformedFrameError
from ..mllp import FrameBuffer
from .base import BaseInterface
from .registry import register

LOG = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 0.5
LISTEN_BACKLOG = 32
RECV_SIZE = 4096

Address = Tuple[str, int]


def resolve_local_ipv4() -> str:
    """
    Return the first IPv4 address of the local host.

    Raises
    ------
    ListenerBindError
        If the host name does not resolve to any IPv4 address.
    """
    try:
        infos = socket.getaddrinfo(
            socket.gethostname(), None, socket.AF_INET, socket.SOCK_STREAM
        )
    except socket.gaierror as e:
        raise ListenerBindError(f"Local IP address not found: {e}") from e
    for _family, _type, _proto, _canon, sockaddr in infos:
        return sockaddr[0]
    raise ListenerBindError("Local IP address not found")


def is_socket_connected(sock: socket.socket) -> bool:
    """
    Cheap liveness probe.

    A socket that polls readable but has no bytes to peek has been closed by
    the peer; a closed or failing descriptor is dead too.
    """
    if sock.fileno() < 0:
        return False
    try:
        readable, _, _ = select.select([sock], [], [], 0.001)
    except (OSError, ValueError):
        return False
    if not readable:
        return True
    try:
        return sock.recv(1, socket.MSG_PEEK) != b""
    except BlockingIOError:
        return True
    except OSError:
        return False


def close_socket(sock: socket.socket) -> None:
    """Shut down and close ``sock``; errors from a dead socket are ignored."""
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass  # not connected
    try:
        sock.close()
    except OSError as e:
        LOG.debug("Error closing socket: %s", e)


class ConnectionRegistry:
    """Live connections of one inbound interface, closed on stop."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._connections: Dict[int, socket.socket] = {}

    def add(self, conn: socket.socket) -> None:
        with self._lock:
            self._connections[id(conn)] = conn

    def discard(self, conn: socket.socket) -> Optional[socket.socket]:
        with self._lock:
            return self._connections.pop(id(conn), None)

    def snapshot(self) -> List[socket.socket]:
        with self._lock:
            return list(self._connections.values())

    def close_all(self) -> int:
        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
        for conn in connections:
            close_socket(conn)
        return len(connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)


@register("inbound-socket")
class InboundSocketInterface(BaseInterface):
    """
    Receive HL7 messages over MLLP and acknowledge them.

    Parameters
    ----------
    config : InterfaceConfig or None
        ``host``/``port`` select the listening address (``host=None`` binds
        the local IPv4 address, ``port=0`` an ephemeral port).
    name : str or None
        Overrides ``config.name``.
    """

    kind = "inbound-socket"

    def __init__(
        self, config: Optional[InterfaceConfig] = None, name: Optional[str] = None
    ) -> None:
        super().__init__(config, name)
        self.persist_connection = self.config.persist_connection
        self.connections = ConnectionRegistry()
        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._listening = threading.Event()
        self._address: Optional[Address] = None

    @property
    def address(self) -> Optional[Address]:
        """The bound (host, port) while listening."""
        return self._address

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        return self._listening.wait(timeout)

    # --------------------------------------------------------------------------
    # lifecycle
    # --------------------------------------------------------------------------

    def _on_start(self) -> bool:
        host = self.config.host or resolve_local_ipv4()
        self._listening.clear()
        self._address = None
        self._thread = self._spawn(self._run, (host, self.config.port))
        return True

    def _on_stop(self) -> bool:
        self.connections.close_all()
        listener, self._listener = self._listener, None
        if listener is not None:
            try:
                listener.close()
            except OSError as e:
                LOG.debug("Error closing listener: %s", e)
        self._join(self._thread)
        self._thread = None
        self._listening.clear()
        self._address = None
        return True

    # --------------------------------------------------------------------------
    # accept loop
    # --------------------------------------------------------------------------

    def _run(self, cancel: threading.Event, endpoint: Address) -> None:
        attempt = 0
        while not cancel.is_set():
            try:
                listener = self._bind(endpoint)
            except OSError as e:
                if e.errno != errno.EADDRINUSE:
                    self.write_error(
                        ListenerBindError(
                            f"Cannot listen on {endpoint[0]}:{endpoint[1]}: {e}"
                        )
                    )
                    break
                if attempt >= self.config.max_bind_retries:
                    self.write_error(
                        ListenerBindError(
                            f"Address {endpoint[0]}:{endpoint[1]} still in use "
                            f"after {attempt} restart(s)"
                        )
                    )
                    break
                delay = self.config.bind_retry_delay * (2**attempt)
                attempt += 1
                self.write_status("Socket address and port already in use.  Recycling.")
                cancel.wait(delay)
                continue

            try:
                self._accept_loop(listener, cancel)
            except OSError as e:
                if not cancel.is_set():
                    self.write_status("Connection status: %s", e)
                    self.write_error(e)
            finally:
                try:
                    listener.close()
                except OSError as e:
                    LOG.debug("Error closing listener: %s", e)
            break

        self._listening.clear()
        if not cancel.is_set():
            # the listener died on its own; reflect that in is_running
            self._running = False
            self.write_status("Listener stopped")

    def _bind(self, endpoint: Address) -> socket.socket:
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(endpoint)
            listener.listen(LISTEN_BACKLOG)
            listener.settimeout(ACCEPT_POLL_INTERVAL)
        except OSError:
            listener.close()
            raise
        self._listener = listener
        host, port = listener.getsockname()[:2]
        self._address = (host, port)
        self._listening.set()
        return listener

    def _accept_loop(self, listener: socket.socket, cancel: threading.Event) -> None:
        host, port = listener.getsockname()[:2]
        while not cancel.is_set():
            self.write_status("Listening on %s:%s", host, port)
            accepted = self._accept(listener, cancel)
            if accepted is None:
                return
            conn, peer = accepted
            self.connections.add(conn)
            self.write_status("Connection established with %s:%s", *peer[:2])
            try:
                self._serve(conn, cancel)
            finally:
                self.connections.discard(conn)
                close_socket(conn)
                self.write_status("Connection closed")

    def _accept(
        self, listener: socket.socket, cancel: threading.Event
    ) -> Optional[Tuple[socket.socket, Address]]:
        while not cancel.is_set():
            try:
                conn, peer = listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if cancel.is_set() or listener.fileno() < 0:
                    return None
                # ECONNABORTED, EMFILE and the like; keep the listener
                self.write_status("Accept failed: %s", e)
                self.write_error(e)
                cancel.wait(ACCEPT_POLL_INTERVAL)
                continue
            conn.settimeout(self.config.receive_timeout)
            return conn, peer
        return None

    # --------------------------------------------------------------------------
    # per-connection loop
    # --------------------------------------------------------------------------

    def _serve(self, conn: socket.socket, cancel: threading.Event) -> None:
        frames = FrameBuffer(self.codec)
        idle_window = timedelta(seconds=self.config.idle_window)
        while not cancel.is_set():
            try:
                if not is_socket_connected(conn):
                    self.write_status("Socket error - connection recycling")
                    return
                try:
                    chunk = conn.recv(RECV_SIZE)
                except socket.timeout:
                    if self.statistics.has_received_message(idle_window):
                        continue
                    self.write_status("Not receiving - connection recycling")
                    return
                if not chunk:
                    self.write_status("Connection closed by peer")
                    return
                for payload in frames.feed(chunk):
                    if not self._process_frame(conn, payload):
                        return
            except OSError as e:
                if cancel.is_set():
                    return
                self.write_status("%s", e)
                self.write_status(
                    "Connection status: %s", errno.errorcode.get(e.errno or 0, e.errno)
                )
                self.write_status("Connection recycling. ...")
                return

    def _process_frame(self, conn: socket.socket, payload: bytes) -> bool:
        """
        Dispatch and acknowledge one payload.

        Returns
        -------
        bool
            False when the connection should be closed afterwards.
        """
        text = self.codec.decode(payload)
        try:
            message = self.parse_message(text)
            self.write_message(message)
            if self.send_acknowledgements:
                conn.sendall(self.create_acknowledgement(message.message_control_id()))
            if self.log_messages:
                self.write_status(text)
        except OSError:
            raise
        except Exception as e:
            self.statistics.add_failure()
            self.write_status("Exception caught parsing frame: %s", e)
            if not isinstance(e, MalformedFrameError):
                self.write_error(
                    MalformedFrameError(f"Exception caught processing frame: {e}")
                )
            return True
        return self.persist_connection
