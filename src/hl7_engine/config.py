# src/hl7_engine/config.py
"""
Configuration utilities for hl7_engine.

Provides immutable dataclass-based configuration objects and a loader that
reads YAML configuration files when present. A file looks like::

    defaults:
      send_acknowledgements: true
      ack_version: "2.5"
    interfaces:
      - name: lab-in
        kind: inbound-socket
        port: 2575
      - name: ris-out
        kind: outbound-socket
        host: 10.0.0.5
        port: 6661

Each entry under ``interfaces`` is layered over ``defaults``.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml


@dataclass(frozen=True)
class InterfaceConfig:
    """
    Immutable per-interface configuration.

    Attributes
    ----------
    name : str
        Display name used in logs and status events.
    kind : str
        Registered interface kind ("inbound-socket", "outbound-socket",
        "inbound-file").
    host : str or None
        Bind address (inbound) or target host (outbound). For inbound
        interfaces None means the local host's IPv4 address.
    port : int
        Listening or target TCP port.
    persist_connection : bool
        Inbound only: keep a connection open after the first exchange.
    send_acknowledgements : bool
        Inbound only: answer each message with an ACK frame.
    log_messages : bool
        Emit each received/delivered payload as a status event.
    start_byte, end_byte, frame_end_byte : int
        MLLP marker bytes.
    hl7_datetime_format : str
        strftime format of MSH-7 in acknowledgements.
    ack_version : str
        MSH-12 of acknowledgements.
    encoding : str
        Text encoding of HL7 payloads on the wire.
    receive_timeout, send_timeout, connect_timeout : float
        Socket timeouts in seconds.
    retry_delay : float
        Outbound: wait before retrying an undelivered head message.
    idle_delay : float
        Outbound: wait between polls of an empty queue.
    idle_window : float
        Inbound: how long a connection may stay silent without any message
        before it is recycled.
    bind_retry_delay : float
        Inbound: base delay before restarting after an address-in-use error.
    max_bind_retries : int
        Inbound: consecutive bind restarts allowed before giving up.
    max_queue_size : int
        Outbound: queue limit; 0 means unlimited.
    file_path : str or None
        File interface: directory to scan.
    file_extension : str
        File interface: extension (without dot) of files to read.
    file_scan_interval : float
        File interface: seconds between scans.
    """

    name: str = "hl7"
    kind: str = "inbound-socket"
    host: Optional[str] = None
    port: int = 2575
    persist_connection: bool = True
    send_acknowledgements: bool = True
    log_messages: bool = False
    start_byte: int = 0x0B
    end_byte: int = 0x1C
    frame_end_byte: int = 0x0D
    hl7_datetime_format: str = "%Y%m%d%H%M%S"
    ack_version: str = "2.3"
    encoding: str = "utf-8"
    receive_timeout: float = 60.0
    send_timeout: float = 10.0
    connect_timeout: float = 10.0
    retry_delay: float = 10.0
    idle_delay: float = 1.0
    idle_window: float = 60.0
    bind_retry_delay: float = 3.0
    max_bind_retries: int = 5
    max_queue_size: int = 10000
    file_path: Optional[str] = None
    file_extension: str = "hl7"
    file_scan_interval: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Attributes
    ----------
    defaults : InterfaceConfig
        Settings shared by every interface unless overridden.
    interfaces : tuple of InterfaceConfig
        Interfaces to run with ``hl7-engine run``.
    """

    defaults: InterfaceConfig = InterfaceConfig()
    interfaces: Tuple[InterfaceConfig, ...] = ()


_FIELD_TYPES: Dict[str, Any] = {f.name: f.type for f in fields(InterfaceConfig)}
_SECTIONS = frozenset({"defaults", "interfaces"})


def _coerce(key: str, value: Any) -> Any:
    """Coerce a YAML scalar to the type declared for ``key``."""
    declared = str(_FIELD_TYPES[key])
    if value is None:
        return None
    if declared == "bool":
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean, got {value!r}")
        return value
    if declared == "int":
        if isinstance(value, bool):
            raise ValueError(f"{key} must be an integer, got {value!r}")
        return int(value)
    if declared == "float":
        return float(value)
    return str(value)


def interface_config_from_mapping(
    data: Mapping[str, Any], base: Optional[InterfaceConfig] = None
) -> InterfaceConfig:
    """
    Build an InterfaceConfig from a mapping, layered over ``base``.

    Parameters
    ----------
    data : Mapping
        Keys are InterfaceConfig field names.
    base : InterfaceConfig or None
        Values for keys missing from ``data``; defaults if None.

    Returns
    -------
    InterfaceConfig

    Raises
    ------
    TypeError
        If data is not a mapping.
    ValueError
        On unknown keys or values of the wrong type.
    """
    if not isinstance(data, Mapping):
        raise TypeError(
            f"Interface settings must be a mapping, got {type(data).__name__}"
        )
    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown interface setting(s): {', '.join(unknown)}")
    try:
        values = {key: _coerce(key, value) for key, value in data.items()}
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid interface setting: {e}") from e
    return replace(base or InterfaceConfig(), **values)


def load_config(path: Optional[Path]) -> AppConfig:
    """
    Load application configuration from a YAML file.

    Parameters
    ----------
    path : Path or None
        Path to a YAML config file. If None, defaults are used.

    Returns
    -------
    AppConfig
        The loaded configuration.

    Raises
    ------
    TypeError
        If the YAML file does not parse to a mapping at the top level, or
        ``interfaces`` is not a list.
    ValueError
        On unknown top-level sections, or a section with unknown keys or
        badly typed values.
    yaml.YAMLError
        If the file is not valid YAML.
    """
    if path is None:
        return AppConfig()

    data: Any = yaml.safe_load(path.read_text())

    if data is None:
        return AppConfig()

    if not isinstance(data, Mapping):
        raise TypeError(
            f"Config file must contain a mapping at top level, "
            f"got {type(data).__name__}. "
            f"Config file: {path}"
        )

    unknown = sorted(str(k) for k in set(data) - _SECTIONS)
    if unknown:
        raise ValueError(
            f"Unknown config section(s): {', '.join(unknown)}. Config file: {path}"
        )

    defaults = interface_config_from_mapping(data.get("defaults") or {})

    entries = data.get("interfaces") or []
    if not isinstance(entries, list):
        raise TypeError(
            f"'interfaces' must be a list, got {type(entries).__name__}. "
            f"Config file: {path}"
        )
    interfaces = tuple(interface_config_from_mapping(e, defaults) for e in entries)

    return AppConfig(defaults=defaults, interfaces=interfaces)
