# src/hl7_engine/cli.py
"""
Command-line interface for hl7_engine.

Subcommands
-----------
parse
    Pretty-print parsed HL7 v2 segments from a file (or stdin with "-").

frame
    Write a message wrapped in MLLP frame markers to stdout.

listen
    Run an inbound MLLP socket interface until interrupted, printing the
    type and control id of every message received.

send
    Deliver the messages in one or more files to an MLLP endpoint and exit
    once every message has been acknowledged.

watch
    Run an inbound file-system interface on a directory until interrupted.

run
    Start every interface listed in the config file until interrupted, or
    list the registered interface kinds (with --list).

Exit codes
----------
0  success
1  handled, expected error (HL7EngineError or KeyboardInterrupt)
2  CLI usage error (argparse or validation failure)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

import yaml

from .config import AppConfig, InterfaceConfig, load_config
from .exceptions import HL7EngineError, ParseError
from .hl7_parser import parse_hl7_v2, to_pretty_segments
from .interfaces import (
    BaseInterface,
    InboundFileSystemInterface,
    InboundSocketInterface,
    OutboundSocketInterface,
    available_kinds,
    create_interface,
)
from .logging_utils import configure_logging
from .mllp import FrameCodec
from .model import Message

# ------------------------------------------------------------------------------
# globals
# ------------------------------------------------------------------------------

LOG = logging.getLogger("hl7_engine")

EXIT_OK = 0
EXIT_ERR = 1
EXIT_CLI = 2

DEFAULT_SEND_TIMEOUT = 30.0

# ------------------------------------------------------------------------------
# Parser construction
# ------------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argparse parser and subcommands.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser with subcommands: parse, frame, listen, send, watch,
        run.
    """
    parser = argparse.ArgumentParser(
        prog="hl7-engine",
        description="Parse, frame, receive and deliver HL7 v2 messages over MLLP.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML config file (overrides defaults).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v, -vv, -vvv).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="hl7-engine (cli) 0.1.0",
    )

    sub = parser.add_subparsers(dest="cmd", required=True)

    # parse
    s1 = sub.add_parser("parse", help="Parse an HL7 v2 message file.")
    s1.add_argument(
        "path",
        type=Path,
        help='Path to HL7 v2 message file. Use "-" to read from stdin.',
    )
    s1.add_argument(
        "--strict",
        action="store_true",
        help="Also validate the message structure against its HL7 version.",
    )

    # frame
    s2 = sub.add_parser("frame", help="Wrap an HL7 v2 message in MLLP markers.")
    s2.add_argument(
        "path",
        type=Path,
        help='Path to HL7 v2 message file. Use "-" to read from stdin.',
    )

    # listen
    s3 = sub.add_parser("listen", help="Receive messages on an MLLP socket.")
    s3.add_argument("--host", default=None, help="Bind address (default: local IPv4).")
    s3.add_argument("--port", type=int, default=None, help="Listening port.")
    s3.add_argument(
        "--transient",
        action="store_true",
        help="Close each connection after its first message.",
    )
    s3.add_argument(
        "--no-ack",
        action="store_true",
        help="Do not answer messages with acknowledgements.",
    )
    s3.add_argument(
        "--log-messages",
        action="store_true",
        help="Log the full text of every message received.",
    )

    # send
    s4 = sub.add_parser("send", help="Deliver HL7 message files to an endpoint.")
    s4.add_argument("host", help="Target host name or IP address.")
    s4.add_argument("port", type=int, help="Target port.")
    s4.add_argument(
        "paths",
        type=Path,
        nargs="+",
        help="Files holding one message or several MLLP frames.",
    )
    s4.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_SEND_TIMEOUT,
        help="Seconds to wait for every message to be acknowledged.",
    )
    s4.add_argument(
        "--retry-delay",
        type=float,
        default=None,
        help="Seconds between delivery attempts (defaults to config).",
    )

    # watch
    s5 = sub.add_parser("watch", help="Read messages from files in a directory.")
    s5.add_argument("directory", type=Path, help="Directory to scan.")
    s5.add_argument(
        "--ext",
        default=None,
        help="Extension of message files, without dot (default: hl7).",
    )
    s5.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between scans.",
    )

    # run
    s6 = sub.add_parser("run", help="Run the interfaces listed in --config.")
    s6.add_argument(
        "--list",
        action="store_true",
        help="List registered interface kinds and exit.",
    )

    return parser


# ------------------------------------------------------------------------------
# Validation helpers
# ------------------------------------------------------------------------------


def _validate_existing_file(path: Path, allow_stdin: bool = False) -> None:
    """
    Validate that a path exists and is a file, or is "-" if allow_stdin is True.

    Raises
    ------
    HL7EngineError
        If the path does not exist, is not a file, is not readable,
        or if "-" is used but allow_stdin is False.
    """
    if allow_stdin and str(path) == "-":
        return
    if not path.exists():
        raise HL7EngineError(f"File not found: {path}")
    if not path.is_file():
        raise HL7EngineError(f"Not a file: {path}")
    if not os.access(path, os.R_OK):
        raise HL7EngineError(f"File is not readable: {path}")


def _validate_port(port: Optional[int]) -> None:
    if port is not None and not 0 <= port <= 65535:
        raise HL7EngineError(f"Port out of range: {port}")


def _read_text_input(path: Path) -> str:
    """
    Read text either from a file or from stdin when path is "-".

    Raises
    ------
    HL7EngineError
        On missing files, permission errors, or OS read failures.
    """
    try:
        if str(path) == "-":
            return sys.stdin.read()
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise HL7EngineError(f"File not found: {path}")
    except PermissionError:
        raise HL7EngineError(f"Permission denied: {path}")
    except OSError as e:
        raise HL7EngineError(f"Failed to read {path}: {e}") from e


def _load_app_config(path: Optional[Path]) -> AppConfig:
    """Load the config file, mapping loader failures to HL7EngineError."""
    if path is not None:
        _validate_existing_file(path)
    try:
        return load_config(path)
    except (TypeError, ValueError, yaml.YAMLError) as e:
        raise HL7EngineError(f"Invalid config file {path}: {e}") from e


# ------------------------------------------------------------------------------
# Message helpers
# ------------------------------------------------------------------------------


def _parse_for_cli(content: str, strict: bool = False) -> Message:
    try:
        return parse_hl7_v2(content, strict=strict)
    except ValueError as e:
        raise ParseError(str(e)) from e


def _messages_from_text(content: str, codec: FrameCodec) -> List[Message]:
    """
    Split file content into messages.

    Content holding MLLP start markers is split on the frame markers;
    anything else is treated as a single message.
    """
    if chr(codec.start_byte) in content:
        tokens = codec.split_text(content)
    else:
        tokens = [content] if content.strip() else []
    return [_parse_for_cli(token.strip("\r\n")) for token in tokens]


def _print_message(interface: BaseInterface, message: Message) -> None:
    print(
        f"{interface.name}\t{message.message_type()}\t{message.message_control_id()}",
        flush=True,
    )


def _attach_console(interface: BaseInterface) -> None:
    interface.message_events.subscribe(lambda m: _print_message(interface, m))


def _wait_forever() -> None:
    while True:
        time.sleep(0.5)


def _run_until_interrupted(interfaces: Sequence[BaseInterface]) -> int:
    """
    Start every interface, block until Ctrl-C, then stop them all.

    Raises
    ------
    HL7EngineError
        If an interface refuses to start.
    """
    started: List[BaseInterface] = []
    try:
        for interface in interfaces:
            _attach_console(interface)
            if not interface.start():
                raise HL7EngineError(f"Interface {interface.name!r} failed to start")
            started.append(interface)
        _wait_forever()
    except KeyboardInterrupt:
        LOG.info("Interrupted; stopping %d interface(s)", len(started))
    finally:
        for interface in started:
            interface.stop()
    return EXIT_OK


# ------------------------------------------------------------------------------
# Command handlers
# ------------------------------------------------------------------------------


def _cmd_parse(path: Path, strict: bool) -> int:
    """
    Parse: pretty-print HL7 v2 segments, one per line.

    Raises
    ------
    HL7EngineError
        If input is invalid or unreadable, or fails strict validation.
    """
    _validate_existing_file(path, allow_stdin=True)
    content = _read_text_input(path)
    msg = _parse_for_cli(content, strict=strict)
    for line in to_pretty_segments(msg):
        print(line)
    return EXIT_OK


def _cmd_frame(path: Path, cfg: InterfaceConfig) -> int:
    """
    Frame: write ``<VT>message<FS><CR>`` to stdout as bytes.
    """
    _validate_existing_file(path, allow_stdin=True)
    content = _read_text_input(path)
    msg = _parse_for_cli(content)
    codec = FrameCodec(cfg.start_byte, cfg.end_byte, cfg.frame_end_byte, cfg.encoding)
    out = sys.stdout.buffer if hasattr(sys.stdout, "buffer") else None
    framed = codec.wrap(msg)
    if out is None:
        sys.stdout.write(framed.decode(cfg.encoding))
    else:
        out.write(framed)
    sys.stdout.flush()
    return EXIT_OK


def _cmd_listen(
    cfg: InterfaceConfig,
    host: Optional[str],
    port: Optional[int],
    transient: bool,
    no_ack: bool,
    log_messages: bool,
) -> int:
    _validate_port(port)
    cfg = replace(
        cfg,
        kind=InboundSocketInterface.kind,
        name="listen" if cfg.name == InterfaceConfig.name else cfg.name,
        host=host if host is not None else cfg.host,
        port=port if port is not None else cfg.port,
        persist_connection=cfg.persist_connection and not transient,
        send_acknowledgements=cfg.send_acknowledgements and not no_ack,
        log_messages=cfg.log_messages or log_messages,
    )
    return _run_until_interrupted([InboundSocketInterface(cfg)])


def _cmd_send(
    cfg: InterfaceConfig,
    host: str,
    port: int,
    paths: Sequence[Path],
    timeout: float,
    retry_delay: Optional[float],
) -> int:
    """
    Send: enqueue every message found in ``paths`` and wait for delivery.

    Raises
    ------
    HL7EngineError
        For unreadable input, an empty batch, or undelivered messages at
        timeout.
    """
    _validate_port(port)
    if timeout <= 0:
        raise HL7EngineError(f"Timeout must be positive, got {timeout}")

    cfg = replace(
        cfg,
        kind=OutboundSocketInterface.kind,
        name="send" if cfg.name == InterfaceConfig.name else cfg.name,
        host=host,
        port=port,
        retry_delay=retry_delay if retry_delay is not None else cfg.retry_delay,
        max_queue_size=0,
    )
    outbound = OutboundSocketInterface(cfg)

    count = 0
    for path in paths:
        _validate_existing_file(path)
        for msg in _messages_from_text(_read_text_input(path), outbound.codec):
            outbound.enqueue_message(msg)
            count += 1
    if count == 0:
        raise HL7EngineError("No HL7 messages found in input")

    outbound.start(quiet=True)
    try:
        delivered = outbound.wait_until_drained(timeout)
    finally:
        outbound.stop(quiet=True)

    if not delivered:
        raise HL7EngineError(
            f"Timed out after {timeout:g}s with {outbound.pending()} of {count} "
            f"message(s) undelivered to {host}:{port}"
        )
    print(f"Delivered {count} message(s) to {host}:{port}")
    return EXIT_OK


def _cmd_watch(
    cfg: InterfaceConfig,
    directory: Path,
    ext: Optional[str],
    interval: Optional[float],
) -> int:
    if not directory.is_dir():
        raise HL7EngineError(f"Not a directory: {directory}")
    cfg = replace(
        cfg,
        kind=InboundFileSystemInterface.kind,
        name="watch" if cfg.name == InterfaceConfig.name else cfg.name,
        file_path=str(directory),
        file_extension=ext if ext is not None else cfg.file_extension,
        file_scan_interval=interval if interval is not None else cfg.file_scan_interval,
    )
    return _run_until_interrupted([InboundFileSystemInterface(cfg)])


def _cmd_run(app: AppConfig, list_only: bool) -> int:
    if list_only:
        print("Registered interface kinds:")
        for kind in available_kinds():
            print(f"    {kind}")
        return EXIT_OK

    if not app.interfaces:
        raise HL7EngineError(
            "No interfaces configured; pass --config with an 'interfaces' list."
        )
    return _run_until_interrupted([create_interface(c) for c in app.interfaces])


# ------------------------------------------------------------------------------
# Entrypoint
# ------------------------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    CLI entrypoint.

    Parameters
    ----------
    argv : list[str] or None, default None
        Argument list for testing; None uses sys.argv[1:].

    Returns
    -------
    int
        Process exit code (EXIT_OK, EXIT_ERR, or EXIT_CLI).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.verbose)

    try:
        app = _load_app_config(args.config)
        if args.cmd == "parse":
            return _cmd_parse(args.path, strict=bool(args.strict))
        if args.cmd == "frame":
            return _cmd_frame(args.path, app.defaults)
        if args.cmd == "listen":
            return _cmd_listen(
                app.defaults,
                host=args.host,
                port=args.port,
                transient=bool(args.transient),
                no_ack=bool(args.no_ack),
                log_messages=bool(args.log_messages),
            )
        if args.cmd == "send":
            return _cmd_send(
                app.defaults,
                host=args.host,
                port=args.port,
                paths=args.paths,
                timeout=args.timeout,
                retry_delay=args.retry_delay,
            )
        if args.cmd == "watch":
            return _cmd_watch(
                app.defaults,
                directory=args.directory,
                ext=args.ext,
                interval=args.interval,
            )
        if args.cmd == "run":
            return _cmd_run(app, list_only=bool(args.list))
        parser.error("Unknown command")
        return EXIT_CLI

    except HL7EngineError as e:
        LOG.error("%s", e)
        return EXIT_ERR
    except KeyboardInterrupt:
        LOG.error("Interrupted")
        return EXIT_ERR


if __name__ == "__main__":
    raise SystemExit(main())
