# src/hl7_engine/interfaces/inbound_file.py
"""
Inbound file-system interface.

Polls a directory for files holding one or more MLLP-framed (or plain) HL7
messages, dispatches every message found and renames each processed file
to ``<name>.processed`` so it is not picked up again.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional

from ..config import InterfaceConfig
from ..model import normalize_line_endings
from .base import BaseInterface
from .registry import register

LOG = logging.getLogger(__name__)

PROCESSED_SUFFIX = ".processed"


@register("inbound-file")
class InboundFileSystemInterface(BaseInterface):
    """
    Read HL7 messages from ``*.<file_extension>`` files in ``file_path``.

    Files are processed in name order every ``file_scan_interval`` seconds.
    """

    kind = "inbound-file"

    def __init__(
        self, config: Optional[InterfaceConfig] = None, name: Optional[str] = None
    ) -> None:
        super().__init__(config, name)
        self.directory = Path(self.config.file_path) if self.config.file_path else None
        self.extension = self.config.file_extension.lstrip(".")
        self._thread: Optional[threading.Thread] = None

    def _on_start(self) -> bool:
        if self.directory is None or not self.extension or not self.directory.is_dir():
            self.write_status("Unable to scan file system, '%s'", self.directory or "")
            self._running = False
            return False

        self.write_status("File system scanning initiated at %s", self.directory)
        self._thread = self._spawn(self._run)
        return True

    def _on_stop(self) -> bool:
        self._join(self._thread)
        self._thread = None
        return True

    def _run(self, cancel: threading.Event) -> None:
        while not cancel.is_set():
            try:
                self.scan()
            except OSError as e:
                # directory vanished or became unreadable; retry next interval
                self.write_error(e)
            cancel.wait(self.config.file_scan_interval)

    def pending_files(self) -> List[Path]:
        if self.directory is None:
            return []
        return sorted(
            (p for p in self.directory.glob(f"*.{self.extension}") if p.is_file()),
            key=lambda p: p.name,
        )

    def scan(self) -> int:
        """
        Process every pending file once.

        Returns
        -------
        int
            Number of messages dispatched.
        """
        files = self.pending_files()
        if files:
            self.write_status("%d .%s files found", len(files), self.extension)

        dispatched = 0
        for path in files:
            try:
                content = path.read_text(encoding=self.config.encoding)
                for token in self.codec.split_text(content):
                    text = normalize_line_endings(token.strip("\r\n"))
                    message = self.parse_message(text)
                    self.write_message(message)
                    dispatched += 1
                    if self.log_messages:
                        self.write_status(token)
            except Exception as e:
                self.statistics.add_failure()
                self.write_error(e)
                continue

            try:
                path.rename(path.with_name(path.name + PROCESSED_SUFFIX))
            except OSError as e:
                self.write_error(e)
        return dispatched
