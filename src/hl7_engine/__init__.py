# src/hl7_engine/__init__.py
"""
hl7_engine: HL7 v2 interfacing over MLLP.

This package provides:
- An HL7 v2 object model (Message, Segment, Field) with a lenient parser.
- MLLP framing and positive acknowledgements.
- Inbound and outbound socket interfaces plus a file-system interface.
- A CLI for parsing, framing, listening, sending and watching.
"""

from __future__ import annotations

from .ack import ACCEPT_MARKER, build_acknowledgement
from .config import AppConfig, InterfaceConfig, load_config
from .mllp import FrameBuffer, FrameCodec
from .model import Field, Message, Segment
from .statistics import InterfaceStatistics

__version__ = "0.1.0"
__all__ = [
    "ACCEPT_MARKER",
    "AppConfig",
    "Field",
    "FrameBuffer",
    "FrameCodec",
    "InterfaceConfig",
    "InterfaceStatistics",
    "Message",
    "Segment",
    "__version__",
    "build_acknowledgement",
    "load_config",
]
