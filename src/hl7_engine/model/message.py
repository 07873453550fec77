# src/hl7_engine/model/message.py
"""
Message: an ordered sequence of HL7 segments.

Segment order is wire order. The first segment, when it is an MSH, is the
header from which the message type (MSH-9), control id (MSH-10) and
timestamp (MSH-7) are read.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, List, Optional, Tuple

from ..dates import parse_hl7_datetime
from ..exceptions import InvalidReferenceError
from .field import DEFAULT_COMPONENT_DELIMITER
from .segment import DEFAULT_FIELD_DELIMITER, HEADER_SEGMENT, Segment

SEGMENT_TERMINATOR = "\r"

MSH_DATETIME = 7
MSH_MESSAGE_TYPE = 9
MSH_CONTROL_ID = 10


def normalize_line_endings(text: str) -> str:
    """Turn \\r\\n and \\n segment separators into the HL7 carriage return."""
    return text.replace("\r\n", SEGMENT_TERMINATOR).replace("\n", SEGMENT_TERMINATOR)


class Message:
    """
    An HL7 v2 message.

    Parameters
    ----------
    field_delimiter : str, default "|"
        Delimiter between fields of each segment.
    component_delimiter : str, default "^"
        Delimiter used by the Field views of each segment.
    newline : str, default "\\r"
        Sequence placed between segments by serialize().
    """

    def __init__(
        self,
        field_delimiter: str = DEFAULT_FIELD_DELIMITER,
        component_delimiter: str = DEFAULT_COMPONENT_DELIMITER,
        newline: str = SEGMENT_TERMINATOR,
    ) -> None:
        self.field_delimiter = field_delimiter
        self.component_delimiter = component_delimiter
        self.newline = newline
        self.text: Optional[str] = None
        self._segments: List[Segment] = []

    # --------------------------------------------------------------------------
    # construction
    # --------------------------------------------------------------------------

    def clear(self) -> None:
        self._segments = []

    def add(self, segment: Segment) -> bool:
        """
        Append a segment.

        Segments whose name is not exactly three characters are dropped.

        Returns
        -------
        bool
            True if the segment was appended.
        """
        name = segment.name
        if not name or len(name) != 3:
            return False
        self._segments.append(segment)
        return True

    @classmethod
    def parse(
        cls,
        text: str,
        field_delimiter: str = DEFAULT_FIELD_DELIMITER,
        component_delimiter: str = DEFAULT_COMPONENT_DELIMITER,
        newline: str = SEGMENT_TERMINATOR,
    ) -> "Message":
        """
        Parse HL7 text into a Message.

        Never fails on string input: tokens that do not yield a three letter
        segment name are dropped, and a message without an MSH simply has no
        header.

        Raises
        ------
        TypeError
            If text is not a string.
        """
        if not isinstance(text, str):
            raise TypeError(f"text must be str, got {type(text).__name__}")

        message = cls(field_delimiter, component_delimiter, newline)
        message.text = text
        for token in text.split(SEGMENT_TERMINATOR):
            segment = Segment.parse(
                token.strip("\n"), field_delimiter, component_delimiter
            )
            message.add(segment)
        return message

    def serialize(self) -> str:
        body = self.newline.join(segment.serialize() for segment in self._segments)
        return body.rstrip("\r\n")

    # --------------------------------------------------------------------------
    # header accessors
    # --------------------------------------------------------------------------

    def header(self) -> Optional[Segment]:
        if not self._segments or self._segments[0].name != HEADER_SEGMENT:
            return None
        return self._segments[0]

    def message_type(self) -> str:
        msh = self.header()
        return msh.get_field(MSH_MESSAGE_TYPE) if msh else ""

    def message_control_id(self) -> str:
        msh = self.header()
        return msh.get_field(MSH_CONTROL_ID) if msh else ""

    def message_datetime(self) -> Optional[datetime]:
        msh = self.header()
        if msh is None:
            return None
        return parse_hl7_datetime(msh.get_field(MSH_DATETIME))

    # --------------------------------------------------------------------------
    # segment lookup
    # --------------------------------------------------------------------------

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return tuple(self._segments)

    def find_segment(self, name: str) -> Optional[Segment]:
        for segment in self._segments:
            if segment.name == name:
                return segment
        return None

    def find_segments(self, name: str) -> List[Segment]:
        return [segment for segment in self._segments if segment.name == name]

    def find_previous_segment(self, name: str, current: Segment) -> Optional[Segment]:
        """
        Return the nearest segment named ``name`` before ``current``.

        Useful for walking repeating groups, e.g. the PID that owns an OBX.

        Raises
        ------
        InvalidReferenceError
            If ``current`` is not a segment of this message.
        """
        position = self._position(current)
        for segment in reversed(self._segments[:position]):
            if segment.name == name:
                return segment
        return None

    def find_next_segment(self, name: str, current: Segment) -> Optional[Segment]:
        """
        Return the nearest segment named ``name`` after ``current``.

        Raises
        ------
        InvalidReferenceError
            If ``current`` is not a segment of this message.
        """
        position = self._position(current)
        for segment in self._segments[position + 1 :]:
            if segment.name == name:
                return segment
        return None

    def _position(self, current: Segment) -> int:
        # identity, not equality: two PID segments may serialize identically
        for i, segment in enumerate(self._segments):
            if segment is current:
                return i
        raise InvalidReferenceError(
            f"Segment {current.name or '<unnamed>'!r} is not part of this message"
        )

    # --------------------------------------------------------------------------
    # dunder
    # --------------------------------------------------------------------------

    def __iter__(self) -> Iterator[Segment]:
        return iter(tuple(self._segments))

    def __len__(self) -> int:
        return len(self._segments)

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return (
            f"<Message type={self.message_type()!r} "
            f"control_id={self.message_control_id()!r} segments={len(self)}>"
        )
