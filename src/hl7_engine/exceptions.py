# src/hl7_engine/exceptions.py
"""
Custom exceptions for hl7_engine.

All exceptions inherit from HL7EngineError so that callers can catch
engine-specific errors without grabbing unrelated built-in exceptions.
"""


class HL7EngineError(Exception):
    """Base class for all hl7_engine exceptions."""

    pass


class ParseError(HL7EngineError):
    """Raised when an HL7 message cannot be parsed or validated."""

    pass


class MalformedFrameError(ParseError):
    """Raised when a payload extracted from an MLLP frame cannot be processed."""

    pass


class InvalidReferenceError(HL7EngineError, LookupError):
    """Raised when a segment-relative lookup names a segment not in the message."""

    pass


class InterfaceError(HL7EngineError):
    """Raised when an interface cannot be created, configured or started."""

    pass


class ListenerBindError(InterfaceError):
    """Raised when an inbound listener cannot bind its address."""

    pass


class DeliveryError(HL7EngineError):
    """Raised when an outbound message is not positively acknowledged."""

    pass


class ConnectivityError(DeliveryError):
    """Raised when the outbound endpoint cannot be reached."""

    pass


class QueueFullError(InterfaceError):
    """Raised when the outbound delivery queue has reached its limit."""

    pass
