# src/hl7_engine/interfaces/__init__.py
"""
Interfaces package initializer.

Automatically imports every interface module so their @register(...)
decorators run and populate the registry.
"""

from __future__ import annotations

import importlib
import pkgutil
from typing import Iterable, Set

from .base import BaseInterface
from .registry import available_kinds, create_interface, get_interface_class, register

_DISCOVERED: Set[str] = set()
_SKIP = {"base", "registry"}


def _iter_modules(pkg_name: str) -> Iterable[str]:
    """
    Yield fully-qualified module names under the given package.

    Only direct Python modules beneath pkg_name are returned.
    """
    pkg = importlib.import_module(pkg_name)
    pkg_path = getattr(pkg, "__path__", None)
    if not pkg_path:
        return
    for _, name, _ in pkgutil.iter_modules(pkg_path, prefix=pkg_name + "."):
        yield name


def load_all() -> None:
    """
    Import all interface modules under hl7_engine.interfaces.

    Idempotent: safe to call multiple times.
    """
    for modname in _iter_modules(__name__):
        if modname in _DISCOVERED:
            continue
        short = modname.rsplit(".", 1)[-1]
        if short.startswith("_") or short in _SKIP:
            continue
        importlib.import_module(modname)
        _DISCOVERED.add(modname)


load_all()

from .inbound_file import InboundFileSystemInterface  # noqa: E402
from .inbound_socket import InboundSocketInterface  # noqa: E402
from .outbound_socket import OutboundSocketInterface  # noqa: E402

__all__ = [
    "BaseInterface",
    "InboundFileSystemInterface",
    "InboundSocketInterface",
    "OutboundSocketInterface",
    "available_kinds",
    "create_interface",
    "get_interface_class",
    "load_all",
    "register",
]
