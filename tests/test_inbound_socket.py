# tests/test_inbound_socket.py
"""
End-to-end tests for hl7_engine.interfaces.inbound_socket over loopback.
"""

import errno
import socket
import time

import pytest

from hl7_engine.config import InterfaceConfig
from hl7_engine.exceptions import ListenerBindError, MalformedFrameError
from hl7_engine.interfaces.inbound_socket import (
    ConnectionRegistry,
    InboundSocketInterface,
    is_socket_connected,
)
from hl7_engine.model import Message

from helpers import ADT_A01, CR, FS, frame, recv_frame, wait_for

ORU_R01 = "MSH|^~\\&|LAB|X|||20230101120500||ORU^R01|MSG002|P|2.3\rOBX|1|NM|718-7"


@pytest.fixture
def make_inbound():
    started = []

    def _make(**overrides):
        settings = dict(name="test-in", host="127.0.0.1", port=0)
        settings.update(overrides)
        iface = InboundSocketInterface(InterfaceConfig(**settings))
        started.append(iface)
        return iface

    yield _make
    for iface in started:
        iface.stop(quiet=True)


def _listen(iface, recorder):
    """Start ``iface`` and return (messages, statuses, errors) recorders."""
    messages, statuses, errors = recorder(), recorder(), recorder()
    iface.message_events.subscribe(messages)
    iface.status_events.subscribe(statuses)
    iface.error_events.subscribe(errors)
    assert iface.start() is True
    assert iface.wait_until_listening(5)
    return messages, statuses, errors


def _connect(iface) -> socket.socket:
    return socket.create_connection(iface.address, timeout=5)


def test_receives_dispatches_and_acknowledges(make_inbound, recorder):
    iface = make_inbound()
    messages, statuses, errors = _listen(iface, recorder)
    host, port = iface.address
    assert host == "127.0.0.1"
    assert port > 0

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        reply = recv_frame(client)

    assert reply.startswith(b"\x0bMSH|")
    assert reply.endswith(FS + CR)
    assert b"MSA|AA|MSG001" in reply
    assert wait_for(lambda: len(messages) == 1)
    msg = messages.items[0]
    assert msg.message_type() == "ADT^A01"
    assert msg.message_control_id() == "MSG001"
    assert iface.statistics.successes() == {"ADT^A01": 1}
    assert f"Listening on 127.0.0.1:{port}" in statuses.texts()
    assert errors.items == []


def test_frame_split_across_sends(make_inbound, recorder):
    iface = make_inbound()
    messages, _, _ = _listen(iface, recorder)
    data = frame(ADT_A01)

    with _connect(iface) as client:
        client.sendall(data[:5])
        time.sleep(0.05)
        client.sendall(data[5:-1])
        time.sleep(0.05)
        client.sendall(data[-1:])
        reply = recv_frame(client)

    assert b"MSA|AA|MSG001" in reply
    assert wait_for(lambda: len(messages) == 1)


def test_two_frames_in_one_send_are_handled_in_order(make_inbound, recorder):
    iface = make_inbound()
    messages, _, _ = _listen(iface, recorder)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01) + frame(ORU_R01))
        data = b""
        deadline = time.monotonic() + 5
        while data.count(FS + CR) < 2 and time.monotonic() < deadline:
            data += client.recv(4096)

    assert data.index(b"MSA|AA|MSG001") < data.index(b"MSA|AA|MSG002")
    assert wait_for(lambda: len(messages) == 2)
    assert [m.message_control_id() for m in messages.items] == ["MSG001", "MSG002"]


def test_no_acknowledgement_when_disabled(make_inbound, recorder):
    iface = make_inbound(send_acknowledgements=False)
    messages, statuses, _ = _listen(iface, recorder)
    assert "SendAcknowledgements=False" in statuses.texts()

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        assert wait_for(lambda: len(messages) == 1)
        client.settimeout(0.3)
        with pytest.raises(socket.timeout):
            client.recv(4096)


def test_non_persistent_connection_closes_after_exchange(make_inbound, recorder):
    iface = make_inbound(persist_connection=False)
    messages, statuses, _ = _listen(iface, recorder)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        assert b"MSA|AA|MSG001" in recv_frame(client)
        assert client.recv(4096) == b""

    assert wait_for(lambda: "Connection closed" in statuses.texts())
    # back to accepting: a second client is served
    with _connect(iface) as client:
        client.sendall(frame(ORU_R01))
        assert b"MSA|AA|MSG002" in recv_frame(client)
    assert wait_for(lambda: len(messages) == 2)


def test_peer_close_returns_to_accepting(make_inbound, recorder):
    iface = make_inbound()
    _, statuses, _ = _listen(iface, recorder)

    client = _connect(iface)
    assert wait_for(lambda: len(iface.connections) == 1)
    client.close()

    assert wait_for(lambda: len(iface.connections) == 0)
    assert wait_for(
        lambda: sum(t.startswith("Listening on") for t in statuses.texts()) == 2
    )
    assert iface.is_running


def test_log_messages_emits_payload_as_status(make_inbound, recorder):
    iface = make_inbound(log_messages=True)
    _, statuses, _ = _listen(iface, recorder)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        recv_frame(client)

    assert wait_for(lambda: ADT_A01 in statuses.texts())


def test_silent_connection_is_kept_until_first_message(make_inbound, recorder):
    iface = make_inbound(receive_timeout=0.1, idle_window=0.1)
    _listen(iface, recorder)

    with _connect(iface):
        assert wait_for(lambda: len(iface.connections) == 1)
        time.sleep(0.4)
        assert len(iface.connections) == 1


def test_idle_connection_is_recycled(make_inbound, recorder):
    iface = make_inbound(receive_timeout=0.2, idle_window=0.1)
    _, statuses, _ = _listen(iface, recorder)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        assert b"MSA|AA" in recv_frame(client)
        client.settimeout(5)
        assert client.recv(4096) == b""

    assert "Not receiving - connection recycling" in statuses.texts()
    assert iface.is_running


def test_stop_closes_open_connections(make_inbound, recorder):
    iface = make_inbound()
    _, statuses, _ = _listen(iface, recorder)

    with _connect(iface) as client:
        assert wait_for(lambda: len(iface.connections) == 1)
        assert iface.stop() is True
        client.settimeout(5)
        try:
            data = client.recv(4096)
        except ConnectionResetError:
            data = b""
        assert data == b""

    assert not iface.is_running
    assert iface.address is None
    assert "Stopping" in statuses.texts()


def test_address_in_use_gives_up_after_bounded_retries(make_inbound, recorder):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]

        iface = make_inbound(port=port, bind_retry_delay=0.01, max_bind_retries=2)
        statuses, errors = recorder(), recorder()
        iface.status_events.subscribe(statuses)
        iface.error_events.subscribe(errors)
        iface.start()

        assert wait_for(lambda: "Listener stopped" in statuses.texts())

    recycles = [
        t
        for t in statuses.texts()
        if t == "Socket address and port already in use.  Recycling."
    ]
    assert len(recycles) == 2
    assert len(errors) == 1
    assert isinstance(errors.items[0], ListenerBindError)
    assert "still in use after 2 restart(s)" in str(errors.items[0])
    assert statuses.texts()[-1] == "Listener stopped"
    assert not iface.is_running
    assert iface.stop() is False


def test_is_socket_connected_detects_peer_close():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
        server.bind(("127.0.0.1", 0))
        server.listen(1)
        client = socket.create_connection(server.getsockname(), timeout=5)
        conn, _ = server.accept()
        with conn:
            assert is_socket_connected(conn)
            client.close()
            assert wait_for(lambda: not is_socket_connected(conn))


def test_connection_registry_close_all():
    reg = ConnectionRegistry()
    a, b = socket.socketpair()
    reg.add(a)
    reg.add(b)
    assert len(reg) == 2
    assert reg.discard(a) is a
    assert reg.discard(a) is None
    assert reg.close_all() == 1
    assert len(reg) == 0
    assert b.fileno() == -1
    a.close()


def test_unprocessable_frame_keeps_connection_open(make_inbound, recorder, monkeypatch):
    real_parse = Message.parse

    def parse_or_fail(cls, text, *args, **kwargs):
        if "MSGBAD" in text:
            raise ValueError("bad frame")
        return real_parse(text, *args, **kwargs)

    monkeypatch.setattr(Message, "parse", classmethod(parse_or_fail))
    iface = make_inbound()
    messages, _, errors = _listen(iface, recorder)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01.replace("MSG001", "MSGBAD")))
        client.sendall(frame(ADT_A01))
        reply = recv_frame(client)
        assert b"MSA|AA|MSG001" in reply
        assert b"MSGBAD" not in reply
        assert len(iface.connections) == 1

    assert len(errors) == 1
    assert isinstance(errors.items[0], MalformedFrameError)
    assert str(errors.items[0]) == "Exception caught parsing message: bad frame"
    assert iface.statistics.failure_count() == 1
    assert [m.message_control_id() for m in messages.items] == ["MSG001"]


def test_transient_accept_error_keeps_listening(make_inbound, recorder, monkeypatch):
    real_accept = socket.socket.accept
    failed = []

    def accept_once_aborted(self):
        if not failed:
            failed.append(True)
            raise OSError(errno.ECONNABORTED, "Software caused connection abort")
        return real_accept(self)

    monkeypatch.setattr(socket.socket, "accept", accept_once_aborted)
    iface = make_inbound()
    messages, statuses, errors = _listen(iface, recorder)
    assert wait_for(lambda: len(errors) == 1)

    with _connect(iface) as client:
        client.sendall(frame(ADT_A01))
        assert b"MSA|AA|MSG001" in recv_frame(client)

    assert iface.is_running
    assert isinstance(errors.items[0], OSError)
    assert any(t.startswith("Accept failed: ") for t in statuses.texts())
    assert wait_for(lambda: len(messages) == 1)
