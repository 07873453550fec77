# src/hl7_engine/model/segment.py
"""
Segment: one delimited line of an HL7 message.

Fields are kept in an index -> value mapping. Index 0 is the three-letter
segment name. For the header segment (MSH) index 1 is the field delimiter
itself: it is structural, always reads back as the delimiter and cannot be
assigned.
"""

from __future__ import annotations

from typing import Dict, Optional

from .field import DEFAULT_COMPONENT_DELIMITER, Field

DEFAULT_FIELD_DELIMITER = "|"
HEADER_SEGMENT = "MSH"


class Segment:
    """A single HL7 segment such as ``PID|1||12345``."""

    def __init__(
        self,
        name: Optional[str] = None,
        delimiter: str = DEFAULT_FIELD_DELIMITER,
        component_delimiter: str = DEFAULT_COMPONENT_DELIMITER,
    ) -> None:
        if not delimiter:
            raise ValueError("delimiter must be a non-empty string")
        self.delimiter = delimiter
        self.component_delimiter = component_delimiter
        self._fields: Dict[int, str] = {}
        if name:
            self._fields[0] = name

    @property
    def name(self) -> str:
        return self._fields.get(0, "")

    @property
    def is_header(self) -> bool:
        return self.name == HEADER_SEGMENT

    @property
    def max_index(self) -> int:
        """Highest populated field index, or -1 for an empty segment."""
        return max(self._fields, default=-1)

    def get_field(self, index: int) -> str:
        """
        Return the raw value at ``index``.

        Absent fields read as an empty string. MSH-1 always reads as the
        field delimiter.
        """
        if self.is_header and index == 1:
            return self.delimiter
        return self._fields.get(index, "")

    def set_field(self, index: int, value: Optional[str]) -> None:
        """
        Set the raw value at ``index``; an empty value removes the field.

        Assignments to MSH-1 are ignored.
        """
        if index < 0:
            raise IndexError(f"field index must be non-negative, got {index}")
        if self.is_header and index == 1:
            return
        if value:
            self._fields[index] = value
        else:
            self._fields.pop(index, None)

    def fields(self) -> Dict[int, str]:
        return dict(self._fields)

    def __getitem__(self, index: int) -> Field:
        # A fresh view each time; edits to it are not written back.
        return Field(self.get_field(index), self.component_delimiter)

    @classmethod
    def parse(
        cls,
        text: str,
        delimiter: str = DEFAULT_FIELD_DELIMITER,
        component_delimiter: str = DEFAULT_COMPONENT_DELIMITER,
    ) -> "Segment":
        """
        Build a segment from its wire text.

        Leading and trailing delimiters are trimmed first. When the first
        token is ``MSH`` the following token (the encoding characters) lands
        at index 2, since index 1 is the delimiter itself.
        """
        segment = cls(delimiter=delimiter, component_delimiter=component_delimiter)
        trimmed = text.strip(delimiter)
        index = 0
        for token in trimmed.split(delimiter):
            segment.set_field(index, token)
            if index == 0 and token == HEADER_SEGMENT:
                index += 1
            index += 1
        return segment

    def serialize(self) -> str:
        parts = []
        for i in range(self.max_index + 1):
            if self.is_header and i == 1:
                # the delimiter that joins MSH-0 and MSH-2 is MSH-1
                continue
            parts.append(self._fields.get(i, ""))
        return self.delimiter.join(parts)

    def __str__(self) -> str:
        return self.serialize()

    def __repr__(self) -> str:
        return f"Segment({self.serialize()!r})"
