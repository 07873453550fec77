# src/hl7_engine/interfaces/base.py
"""
Interface lifecycle contract.

BaseInterface owns what every HL7 interface shares: configuration, the
MLLP codec, statistics, the three event channels (message, status, error)
and the start/stop protocol. Subclasses implement ``_on_start`` and
``_on_stop``; their loops run on dedicated daemon threads and watch the
cancellation event handed to them.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import threading
import uuid
from typing import Any, Callable, Optional

from ..ack import build_acknowledgement
from ..config import InterfaceConfig
from ..events import EventChannel, InterfaceStatusEvent
from ..exceptions import MalformedFrameError
from ..mllp import FrameCodec
from ..model import Message
from ..statistics import InterfaceStatistics

LOG = logging.getLogger(__name__)

# How long stop() waits for a worker thread to notice cancellation.
JOIN_TIMEOUT = 5.0


class BaseInterface(abc.ABC):
    """
    Base class for inbound and outbound HL7 interfaces.

    Parameters
    ----------
    config : InterfaceConfig or None
        Interface settings; defaults are used if None.
    name : str or None
        Overrides ``config.name``.
    """

    kind: str = ""

    def __init__(
        self, config: Optional[InterfaceConfig] = None, name: Optional[str] = None
    ) -> None:
        self.config = config or InterfaceConfig()
        self.id = str(uuid.uuid4())
        self.name = name or self.config.name
        self.send_acknowledgements = self.config.send_acknowledgements
        self.log_messages = self.config.log_messages
        self.statistics = InterfaceStatistics()
        self.codec = FrameCodec(
            self.config.start_byte,
            self.config.end_byte,
            self.config.frame_end_byte,
            self.config.encoding,
        )

        self.message_events: EventChannel[Message] = EventChannel("message")
        self.status_events: EventChannel[InterfaceStatusEvent] = EventChannel("status")
        self.error_events: EventChannel[Exception] = EventChannel("error")

        self._running = False
        self._lifecycle_lock = threading.RLock()
        self._cancel = threading.Event()

    # --------------------------------------------------------------------------
    # lifecycle
    # --------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, quiet: bool = False) -> bool:
        """
        Start the interface, restarting it if it is already running.

        Parameters
        ----------
        quiet : bool, default False
            If True, no status events are emitted for the transition.

        Returns
        -------
        bool
            Result of the interface-specific start logic.
        """
        with self._lifecycle_lock:
            if not quiet:
                self.write_status("Starting")
                self.write_status("LogMessages=%s", self.log_messages)
                self.write_status("SendAcknowledgements=%s", self.send_acknowledgements)
            self.stop(quiet)
            self._cancel = threading.Event()
            self._running = True
            try:
                return self._on_start()
            except BaseException:
                self._running = False
                self._cancel.set()
                raise

    def stop(self, quiet: bool = False) -> bool:
        """
        Stop the interface.

        Returns
        -------
        bool
            False if the interface was not running, otherwise the result of
            the interface-specific stop logic.
        """
        with self._lifecycle_lock:
            if not self._running:
                return False
            if not quiet:
                self.write_status("Stopping")
            self._cancel.set()
            try:
                return self._on_stop()
            finally:
                self._running = False

    async def start_async(self, quiet: bool = False) -> bool:
        return await asyncio.to_thread(self.start, quiet)

    async def stop_async(self, quiet: bool = False) -> bool:
        return await asyncio.to_thread(self.stop, quiet)

    @abc.abstractmethod
    def _on_start(self) -> bool:
        ...

    @abc.abstractmethod
    def _on_stop(self) -> bool:
        ...

    # --------------------------------------------------------------------------
    # helpers for subclasses
    # --------------------------------------------------------------------------

    def _spawn(self, target: Callable[..., None], *args: Any) -> threading.Thread:
        """Run ``target(cancel, *args)`` on a daemon thread named after the interface."""
        thread = threading.Thread(
            target=target,
            args=(self._cancel, *args),
            name=f"{self.kind or 'interface'}:{self.name}",
            daemon=True,
        )
        thread.start()
        return thread

    @staticmethod
    def _join(thread: Optional[threading.Thread]) -> None:
        if thread is None or thread is threading.current_thread():
            return
        thread.join(timeout=JOIN_TIMEOUT)
        if thread.is_alive():
            LOG.warning("Thread %s did not stop within %.1fs", thread.name, JOIN_TIMEOUT)

    def create_acknowledgement(self, control_id: str) -> bytes:
        """Return the framed ACK for ``control_id``."""
        ack = build_acknowledgement(
            control_id,
            timestamp_format=self.config.hl7_datetime_format,
            version=self.config.ack_version,
        )
        return self.codec.wrap(ack)

    def parse_message(self, text: str) -> Message:
        try:
            return Message.parse(text)
        except Exception as e:
            error = MalformedFrameError(f"Exception caught parsing message: {e}")
            self.write_error(error)
            raise error from e

    def write_message(self, message: Message) -> None:
        self.statistics.add_success(message.message_type())
        self.message_events.emit(message)

    def write_status(self, text: str, *args: object) -> None:
        if args:
            text = text % args
        LOG.info("[%s] %s", self.name, text)
        self.status_events.emit(InterfaceStatusEvent(self.name, text))

    def write_error(self, error: Exception) -> None:
        LOG.warning("[%s] %s: %s", self.name, type(error).__name__, error)
        self.error_events.emit(error)

    def __repr__(self) -> str:
        state = "running" if self._running else "stopped"
        return f"<{type(self).__name__} {self.name!r} {state}>"
