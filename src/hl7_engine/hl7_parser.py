# src/hl7_engine/hl7_parser.py
"""
HL7 v2 parsing utilities.

Provides:
- parse_hl7_v2: lenient parsing into a Message, optionally validated
- validate_strict: hl7apy STRICT validation of raw ER7 text
- to_pretty_segments: segment-per-line ER7 strings
- to_dict: map of segment name -> list of ER7 strings
"""

from __future__ import annotations

from typing import Dict, List

from hl7apy.consts import VALIDATION_LEVEL
from hl7apy.exceptions import HL7apyException
from hl7apy.parser import parse_message

from .exceptions import ParseError
from .model import Message, normalize_line_endings


def validate_strict(raw: str) -> None:
    """
    Validate an HL7 v2 message against its version's structures with hl7apy.

    Parameters
    ----------
    raw : str
        Raw HL7 v2 message in ER7 format.

    Raises
    ------
    ParseError
        If hl7apy rejects the message.
    """
    try:
        parse_message(
            normalize_line_endings(raw).strip("\r"),
            find_groups=False,
            validation_level=VALIDATION_LEVEL.STRICT,
        )
    except HL7apyException as e:
        raise ParseError(f"Failed to parse HL7 v2 message: {e}") from e


def parse_hl7_v2(raw: str, *, strict: bool = False) -> Message:
    """
    Parse an HL7 v2 message string into a Message.

    Parameters
    ----------
    raw : str
        Raw HL7 v2 message in ER7 format (segments separated by CR/LF).
    strict : bool, default False
        If True, the message must also pass hl7apy STRICT validation.

    Returns
    -------
    Message
        Parsed HL7 message object.

    Raises
    ------
    TypeError
        If raw is not a string.
    ValueError
        If raw is an empty string.
    ParseError
        If strict is True and the message fails validation.
    """
    if not isinstance(raw, str):
        raise TypeError(f"raw must be str, got {type(raw).__name__}")
    if raw.strip() == "":
        raise ValueError("raw must be a non-empty HL7 v2 string")

    normalized = normalize_line_endings(raw)
    if strict:
        validate_strict(normalized)
    return Message.parse(normalized)


def to_pretty_segments(msg: Message) -> List[str]:
    """
    Return a list of ER7 strings, one per segment, in message order.

    Parameters
    ----------
    msg : Message
        Parsed message.

    Returns
    -------
    List[str]
        Segment strings (e.g., "PID|...").

    Raises
    ------
    TypeError
        If msg is not a Message.
    """
    if not isinstance(msg, Message):
        raise TypeError(
            f"msg must be hl7_engine.model.Message, got {type(msg).__name__}"
        )

    return [seg.serialize() for seg in msg]


def to_dict(msg: Message) -> Dict[str, List[str]]:
    """
    Return a dictionary mapping segment name to list of ER7 strings.

    Parameters
    ----------
    msg : Message
        Parsed message.

    Returns
    -------
    Dict[str, List[str]]
        Example: {"MSH": ["MSH|^~\\&|..."], "OBX": ["OBX|1|...", "OBX|2|..."]}

    Raises
    ------
    TypeError
        If msg is not a Message.
    """
    if not isinstance(msg, Message):
        raise TypeError(
            f"msg must be hl7_engine.model.Message, got {type(msg).__name__}"
        )

    out: Dict[str, List[str]] = {}
    for seg in msg:
        out.setdefault(seg.name, []).append(seg.serialize())
    return out
