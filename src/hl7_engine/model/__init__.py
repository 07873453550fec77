# src/hl7_engine/model/__init__.py
"""
HL7 v2 object model: Message, Segment and Field.
"""

from __future__ import annotations

from .field import DEFAULT_COMPONENT_DELIMITER, Field
from .message import SEGMENT_TERMINATOR, Message, normalize_line_endings
from .segment import DEFAULT_FIELD_DELIMITER, HEADER_SEGMENT, Segment

__all__ = [
    "DEFAULT_COMPONENT_DELIMITER",
    "DEFAULT_FIELD_DELIMITER",
    "HEADER_SEGMENT",
    "SEGMENT_TERMINATOR",
    "Field",
    "Message",
    "Segment",
    "normalize_line_endings",
]
