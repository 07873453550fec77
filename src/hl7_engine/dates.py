# src/hl7_engine/dates.py
"""
HL7 timestamp helpers.

HL7 v2 DTM values are digit strings such as ``20230101120000`` optionally
followed by a UTC offset (``+0500`` or ``+05:00``). Only the three layouts
used by the engine are recognized; anything else yields None.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional, Pattern, Tuple

# (shape, strptime format, is_offset_aware); tried in priority order.
_FORMATS: Tuple[Tuple[Pattern[str], str, bool], ...] = (
    (re.compile(r"\d{14}[+-]\d{2}:?\d{2}"), "%Y%m%d%H%M%S%z", True),
    (re.compile(r"\d{14}"), "%Y%m%d%H%M%S", False),
    (re.compile(r"\d{12}"), "%Y%m%d%H%M", False),
)


def parse_hl7_datetime(text: Optional[str]) -> Optional[datetime]:
    """
    Parse an HL7 timestamp.

    Parameters
    ----------
    text : str or None
        Raw field value, e.g. MSH-7.

    Returns
    -------
    datetime or None
        An aware UTC datetime when the value carries an offset, a naive local
        datetime for ``yyyyMMddHHmmss`` and ``yyyyMMddHHmm`` values, or None if
        the value matches none of the supported layouts.
    """
    if not text:
        return None
    value = text.strip()
    for shape, fmt, aware in _FORMATS:
        if not shape.fullmatch(value):
            continue
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            # right shape, impossible calendar value (e.g. month 13)
            continue
        if aware:
            return parsed.astimezone(timezone.utc)
        return parsed
    return None
