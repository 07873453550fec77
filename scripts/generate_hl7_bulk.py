#!/usr/bin/env python3
"""
Generate a bulk set of HL7 v2 messages for load and soak testing.

Messages are built with the hl7_engine object model so every file can be
fed straight to ``hl7-engine send`` or dropped into a directory watched by
``hl7-engine watch``.

Features:
- ADT^A01 (MSH, EVN, PID, PV1) and ORU^R01 (MSH, PID, OBR, OBX...) messages
- one file per message, either plain (CR separated) or MLLP framed
- an optional single stream file holding every message as consecutive frames
- deterministic output with --seed

Examples:
    # 500 framed ADT^A01 messages, one per file
    python scripts/generate_hl7_bulk.py --count 500 --out data/bulk --framed

    # 200 mixed messages plus a stream file for a single `hl7-engine send`
    python scripts/generate_hl7_bulk.py \
        --count 200 \
        --out data/bulk \
        --message-type mixed \
        --stream-file data/stream/all.hl7 \
        --seed 7
"""

from __future__ import annotations

import argparse
import random
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List

from hl7_engine.mllp import FrameCodec
from hl7_engine.model import Message, Segment

SEED = 22
VERSION = "2.5.1"

NAMES_GIVEN = ["John", "Jane", "Alex", "Sam", "Chris", "Taylor", "Jordan", "Riley"]
NAMES_FAMILY = ["Doe", "Smith", "Johnson", "Lee", "Brown", "Garcia", "Tran", "Moore"]
SEX_CODES = ["M", "F", "O", "U"]

# (code^text^system, units, low, high)
OBSERVATIONS = [
    ("718-7^Hemoglobin^LN", "g/dL", 10.0, 17.0),
    ("2345-7^Glucose^LN", "mg/dL", 60.0, 180.0),
    ("2951-2^Sodium^LN", "mmol/L", 130.0, 150.0),
    ("2823-3^Potassium^LN", "mmol/L", 3.0, 5.5),
]


def _segment(name: str, values: Dict[int, str]) -> Segment:
    seg = Segment(name)
    for index, value in values.items():
        seg.set_field(index, value)
    return seg


def _header(message_type: str, control_id: str, stamp: str) -> Segment:
    return _segment(
        "MSH",
        {
            2: "^~\\&",
            3: "HIS",
            4: "RIH",
            5: "LIS",
            6: "LAB",
            7: stamp,
            9: message_type,
            10: control_id,
            11: "P",
            12: VERSION,
        },
    )


def _patient(rng: random.Random) -> Segment:
    dob = f"{rng.randint(1930, 2020):04d}{rng.randint(1, 12):02d}{rng.randint(1, 28):02d}"
    return _segment(
        "PID",
        {
            1: "1",
            3: f"{rng.randint(10_000, 999_999)}^^^MRN",
            5: f"{rng.choice(NAMES_FAMILY)}^{rng.choice(NAMES_GIVEN)}",
            7: dob,
            8: rng.choice(SEX_CODES),
        },
    )


def make_adt_a01(rng: random.Random, idx: int, when: datetime) -> Message:
    stamp = when.strftime("%Y%m%d%H%M%S")
    msg = Message()
    msg.add(_header("ADT^A01", f"MSG{idx:06d}", stamp))
    msg.add(_segment("EVN", {1: "A01", 2: stamp}))
    msg.add(_patient(rng))
    msg.add(_segment("PV1", {1: "1", 2: "I", 3: "2000^2012^01"}))
    return msg


def make_oru_r01(rng: random.Random, idx: int, when: datetime) -> Message:
    stamp = when.strftime("%Y%m%d%H%M%S")
    msg = Message()
    msg.add(_header("ORU^R01", f"MSG{idx:06d}", stamp))
    msg.add(_patient(rng))
    msg.add(_segment("OBR", {1: "1", 3: f"F{idx:06d}", 4: "24323-8^CMP^LN", 7: stamp}))
    for n, (code, units, low, high) in enumerate(
        rng.sample(OBSERVATIONS, k=rng.randint(1, len(OBSERVATIONS))), start=1
    ):
        msg.add(
            _segment(
                "OBX",
                {
                    1: str(n),
                    2: "NM",
                    3: code,
                    5: f"{rng.uniform(low, high):.2f}",
                    6: units,
                    11: "F",
                },
            )
        )
    return msg


GENERATORS: Dict[str, Callable[[random.Random, int, datetime], Message]] = {
    "adt_a01": make_adt_a01,
    "oru_r01": make_oru_r01,
}


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate bulk HL7 v2 messages.")
    ap.add_argument(
        "--count",
        type=int,
        default=100,
        help="How many messages to generate (default 100).",
    )
    ap.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Destination directory for per-message files.",
    )
    ap.add_argument(
        "--seed",
        type=int,
        default=SEED,
        help="Random seed for reproducible output (default 22).",
    )
    ap.add_argument(
        "--message-type",
        choices=sorted(GENERATORS) + ["mixed"],
        default="adt_a01",
        help="Type of messages to generate; 'mixed' picks one per message.",
    )
    ap.add_argument(
        "--framed",
        action="store_true",
        help="Wrap each per-message file in MLLP frame markers.",
    )
    ap.add_argument(
        "--stream-file",
        type=Path,
        default=None,
        help="Also write every message, MLLP framed, to this single file.",
    )
    return ap.parse_args()


def main() -> None:
    args = parse_args()

    rng = random.Random(args.seed)
    codec = FrameCodec()
    outdir: Path = args.out
    outdir.mkdir(parents=True, exist_ok=True)
    base_dt = datetime(2025, 1, 1, 12, 0, 0)

    frames: List[bytes] = []
    for i in range(1, args.count + 1):
        kind = args.message_type
        if kind == "mixed":
            kind = rng.choice(sorted(GENERATORS))
        msg = GENERATORS[kind](rng, i, base_dt + timedelta(minutes=i))

        framed = codec.wrap(msg)
        payload = framed if args.framed else codec.encode(msg)
        (outdir / f"msg_{i:05d}.hl7").write_bytes(payload)
        frames.append(framed)

    print(f"Generated {args.count} messages in {outdir}")
    if args.stream_file is not None:
        args.stream_file.parent.mkdir(parents=True, exist_ok=True)
        args.stream_file.write_bytes(b"".join(frames))
        print(f"Also wrote stream file: {args.stream_file}")


if __name__ == "__main__":
    main()
