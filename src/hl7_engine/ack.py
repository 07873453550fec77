# src/hl7_engine/ack.py
"""
Acknowledgement builder.

Every message accepted by an inbound interface is answered with a positive
(``AA``) acknowledgement echoing its control id. There is no negative path:
a payload that cannot be processed is reported on the interface's error
channel instead.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from .model import Message, Segment

ACK_MESSAGE_TYPE = "ACK"
ACCEPT_CODE = "AA"
# Substring an outbound interface looks for in a reply.
ACCEPT_MARKER = "MSA|AA"

DEFAULT_ACK_VERSION = "2.3"
DEFAULT_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
ENCODING_CHARACTERS = "^~\\&"
PROCESSING_ID = "P"


def build_acknowledgement(
    control_id: str,
    *,
    timestamp_format: str = DEFAULT_TIMESTAMP_FORMAT,
    version: str = DEFAULT_ACK_VERSION,
    now: Optional[datetime] = None,
    field_delimiter: str = "|",
    component_delimiter: str = "^",
    newline: str = "\r",
) -> Message:
    """
    Build an ``ACK`` message for a received control id.

    Parameters
    ----------
    control_id : str
        MSH-10 of the message being acknowledged; echoed in MSA-2.
    timestamp_format : str, default "%Y%m%d%H%M%S"
        strftime format for MSH-7.
    version : str, default "2.3"
        HL7 version written to MSH-12.
    now : datetime or None
        Timestamp to use instead of the current local time.

    Returns
    -------
    Message
        ``MSH`` + ``MSA`` acknowledgement with a fresh control id.
    """
    stamp = (now or datetime.now()).strftime(timestamp_format)

    msh = Segment("MSH", field_delimiter, component_delimiter)
    msh.set_field(2, ENCODING_CHARACTERS)
    msh.set_field(7, stamp)
    msh.set_field(9, ACK_MESSAGE_TYPE)
    msh.set_field(10, str(uuid.uuid4()))
    msh.set_field(11, PROCESSING_ID)
    msh.set_field(12, version)

    msa = Segment("MSA", field_delimiter, component_delimiter)
    msa.set_field(1, ACCEPT_CODE)
    msa.set_field(2, control_id)

    ack = Message(field_delimiter, component_delimiter, newline)
    ack.add(msh)
    ack.add(msa)
    return ack


def is_positive_acknowledgement(reply: str) -> bool:
    """Return True if ``reply`` carries the ``MSA|AA`` acceptance marker."""
    return ACCEPT_MARKER in reply
