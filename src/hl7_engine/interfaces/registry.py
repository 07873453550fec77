# src/hl7_engine/interfaces/registry.py
"""
Registry of HL7 interface kinds.

Provides:
- a @register(kind) decorator to bind kind strings to interface classes,
- lookup and construction from an InterfaceConfig,
- listing of available kinds.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Type

from ..config import InterfaceConfig
from ..exceptions import InterfaceError

if TYPE_CHECKING:
    from .base import BaseInterface

# Map interface kind (e.g., "inbound-socket") to an interface class.
_REGISTRY: Dict[str, Type["BaseInterface"]] = {}


def register(kind: str):
    """
    Decorator to register an interface class under a kind name.

    Parameters
    ----------
    kind : str
        Kind string used in configuration, e.g., "outbound-socket".

    Raises
    ------
    ValueError
        If the kind is already registered.
    TypeError
        If the decorated object is not a class with start/stop methods.

    Returns
    -------
    callable
        A class decorator that registers the interface.
    """

    def _wrap(cls: Type["BaseInterface"]) -> Type["BaseInterface"]:
        if kind in _REGISTRY:
            raise ValueError(f"Interface already registered for kind {kind!r}")
        if not isinstance(cls, type):
            raise TypeError(
                f"Only classes can be registered as interfaces, got {type(cls)}"
            )
        if not callable(getattr(cls, "start", None)) or not callable(
            getattr(cls, "stop", None)
        ):
            raise TypeError(
                f"Class {cls.__name__} does not implement the interface lifecycle"
            )

        _REGISTRY[kind] = cls
        return cls

    return _wrap


def available_kinds() -> List[str]:
    """
    List all registered interface kinds.

    Returns
    -------
    List[str]
        Sorted list of kinds (e.g., ["inbound-file", "inbound-socket"]).
    """
    return sorted(_REGISTRY.keys())


def get_interface_class(kind: str) -> Optional[Type["BaseInterface"]]:
    return _REGISTRY.get(kind.strip().lower())


def create_interface(config: InterfaceConfig) -> "BaseInterface":
    """
    Instantiate the interface registered for ``config.kind``.

    Parameters
    ----------
    config : InterfaceConfig
        Settings of the interface; ``kind`` selects the class.

    Returns
    -------
    BaseInterface
        A new, not yet started, interface.

    Raises
    ------
    InterfaceError
        If no interface is registered for the kind.
    """
    cls = get_interface_class(config.kind)
    if cls is None:
        raise InterfaceError(
            f"Unknown interface kind {config.kind!r}; "
            f"expected one of: {', '.join(available_kinds()) or '<none>'}"
        )
    return cls(config)
