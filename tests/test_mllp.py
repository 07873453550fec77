# tests/test_mllp.py
"""
Tests for hl7_engine.mllp.
"""

import pytest

from hl7_engine.mllp import FrameBuffer, FrameCodec
from hl7_engine.model import Message

VT, FS, CR = b"\x0b", b"\x1c", b"\r"

MSG_A = b"MSH|^~\\&|A|||||||ADT^A01|1|P|2.3\rPID|1"
MSG_B = b"MSH|^~\\&|B|||||||ADT^A08|2|P|2.3\rPID|2"


def framed(payload: bytes) -> bytes:
    return VT + payload + FS + CR


# ------------------------------------------------------------------------------
# wrap
# ------------------------------------------------------------------------------


def test_wrap_text_adds_markers():
    assert FrameCodec().wrap("MSH|x") == b"\x0bMSH|x\x1c\r"


def test_wrap_message_serializes_it():
    msg = Message.parse("MSH|^~\\&|A\rPID|1\r")
    assert FrameCodec().wrap(msg) == b"\x0bMSH|^~\\&|A\rPID|1\x1c\r"


def test_wrap_bytes_and_custom_markers():
    codec = FrameCodec(start_byte=0x02, end_byte=0x03, terminator_byte=0x0A)
    assert codec.wrap(b"abc") == b"\x02abc\x03\n"


def test_wrap_rejects_other_types():
    with pytest.raises(TypeError, match=r"^payload must be str, bytes or Message"):
        FrameCodec().wrap(42)


@pytest.mark.parametrize("value", [-1, 256, 1000])
def test_marker_must_be_a_byte(value):
    with pytest.raises(ValueError, match=r"^start_byte must be a single byte"):
        FrameCodec(start_byte=value)


def test_marker_must_be_int():
    with pytest.raises(TypeError, match=r"^end_byte must be int"):
        FrameCodec(end_byte="\x1c")


# ------------------------------------------------------------------------------
# extract
# ------------------------------------------------------------------------------


def test_extract_single_complete_frame():
    payload, rest = FrameCodec().extract(framed(MSG_A))
    assert payload == MSG_A
    assert rest == b""


def test_two_back_to_back_frames_yield_both_and_no_residual():
    codec = FrameCodec()
    payloads, rest = codec.extract_all(framed(MSG_A) + framed(MSG_B))
    assert payloads == [MSG_A, MSG_B]
    assert rest == b""


def test_complete_then_partial_frame_keeps_partial_unchanged():
    codec = FrameCodec()
    partial = VT + MSG_B[:10]
    payloads, rest = codec.extract_all(framed(MSG_A) + partial)
    assert payloads == [MSG_A]
    assert rest == partial


def test_residual_keeps_first_byte_of_next_frame():
    # No terminator between frames: the next start byte must survive.
    codec = FrameCodec()
    payload, rest = codec.extract(VT + MSG_A + FS + VT + MSG_B + FS + CR)
    assert payload == MSG_A
    assert rest[:1] == VT
    assert codec.extract(rest) == (MSG_B, b"")


def test_only_one_terminator_is_consumed():
    codec = FrameCodec()
    payload, rest = codec.extract(framed(MSG_A) + CR + b"junk")
    assert payload == MSG_A
    assert rest == CR + b"junk"


def test_missing_start_byte_is_incomplete():
    buf = MSG_A + FS + CR
    assert FrameCodec().extract(buf) == (None, buf)


def test_missing_end_byte_is_incomplete():
    buf = VT + MSG_A
    assert FrameCodec().extract(buf) == (None, buf)


def test_end_byte_before_start_is_ignored():
    codec = FrameCodec()
    payload, rest = codec.extract(b"noise" + FS + framed(MSG_A))
    assert payload == MSG_A
    assert rest == b""


def test_empty_frame_gives_empty_payload():
    assert FrameCodec().extract(VT + FS + CR) == (b"", b"")


def test_split_text_for_file_content():
    codec = FrameCodec()
    text = (framed(MSG_A) + b"\n" + framed(MSG_B)).decode()
    assert codec.split_text(text) == [MSG_A.decode(), MSG_B.decode()]


def test_decode_replaces_invalid_bytes():
    assert FrameCodec().decode(b"PID|\xff") == "PID|�"


# ------------------------------------------------------------------------------
# FrameBuffer
# ------------------------------------------------------------------------------


def test_frame_buffer_reassembles_frames_split_across_reads():
    data = framed(MSG_A) + framed(MSG_B)
    buf = FrameBuffer()
    out = []
    for i in range(0, len(data), 7):
        out.extend(buf.feed(data[i : i + 7]))
    assert out == [MSG_A, MSG_B]
    assert buf.residual == b""
    assert len(buf) == 0


def test_frame_buffer_split_between_end_and_terminator():
    buf = FrameBuffer()
    assert buf.feed(VT + MSG_A + FS) == [MSG_A]
    assert buf.feed(CR + VT + MSG_B) == []
    assert buf.feed(FS + CR) == [MSG_B]
    assert buf.residual == b""


def test_frame_buffer_clear():
    buf = FrameBuffer()
    buf.feed(VT + b"partial")
    assert len(buf) == 8
    buf.clear()
    assert buf.residual == b""
