import json
import socket
import struct

import pytest

from remote_camera.errors import ProtocolError, DecodeError
from remote_camera.protocol.framing import (
    Command,
    Response,
    pack_frame,
    read_frame,
    write_frame,
    encode_command,
    decode_command,
    encode_response,
    decode_response,
)


@pytest.fixture
def sock_pair():
    a, b = socket.socketpair()
    a.settimeout(2.0)
    b.settimeout(2.0)
    yield a, b
    a.close()
    b.close()


def test_pack_frame_prefixes_big_endian_length():
    assert pack_frame(b"abc") == b"\x00\x00\x00\x03abc"
    assert pack_frame(b"") == b"\x00\x00\x00\x00"


def test_frames_round_trip_over_socket(sock_pair):
    a, b = sock_pair
    write_frame(a, b"first")
    write_frame(a, b"")
    write_frame(a, "κάμερα".encode("utf-8"))

    assert read_frame(b) == b"first"
    assert read_frame(b) == b""
    assert read_frame(b).decode("utf-8") == "κάμερα"


def test_clean_eof_returns_none(sock_pair):
    a, b = sock_pair
    a.close()
    assert read_frame(b) is None


def test_truncated_prefix_raises(sock_pair):
    a, b = sock_pair
    a.sendall(b"\x00\x00")
    a.close()
    with pytest.raises(ProtocolError):
        read_frame(b)


def test_truncated_payload_raises(sock_pair):
    a, b = sock_pair
    a.sendall(struct.pack("!I", 10) + b"abc")
    a.close()
    with pytest.raises(ProtocolError):
        read_frame(b)


def test_oversized_length_rejected_before_reading(sock_pair):
    a, b = sock_pair
    a.sendall(struct.pack("!I", 2 ** 31))
    with pytest.raises(ProtocolError):
        read_frame(b, max_size=1024)


def test_stop_between_messages_returns_none(sock_pair):
    a, b = sock_pair
    b.settimeout(0.05)
    assert read_frame(b, is_running=lambda: False) is None


def test_timeout_without_running_check_propagates(sock_pair):
    a, b = sock_pair
    b.settimeout(0.05)
    with pytest.raises(socket.timeout):
        read_frame(b)


def test_command_round_trip():
    payload = encode_command("switch_camera", {"camera_id": 1})
    assert decode_command(payload) == Command(name="switch_camera", arguments={"camera_id": 1})


def test_command_without_data():
    assert decode_command(b'{"command": "get_cameras"}') == Command(name="get_cameras")


@pytest.mark.parametrize("payload", [b"not json", b"\xff\xfe\x00"])
def test_undecodable_command_is_fatal(payload):
    with pytest.raises(DecodeError) as exc_info:
        decode_command(payload)
    assert exc_info.value.fatal


@pytest.mark.parametrize("payload, message", [
    (b'[1, 2]', "Command must be a JSON object"),
    (b'{"data": {}}', "Missing command field"),
    (b'{"command": ""}', "Missing command field"),
    (b'{"command": "switch_camera", "data": 3}', "Command data must be an object"),
])
def test_malformed_command_is_recoverable(payload, message):
    with pytest.raises(DecodeError) as exc_info:
        decode_command(payload)
    assert not exc_info.value.fatal
    assert str(exc_info.value) == message


def test_success_response_shape():
    body = json.loads(encode_response(Response.ok(cameras=["Back", "Front"])))
    assert body == {"success": True, "cameras": ["Back", "Front"]}


def test_failure_response_shape():
    body = json.loads(encode_response(Response.failure("Invalid camera ID")))
    assert body == {"success": False, "error": "Invalid camera ID"}


def test_response_keeps_unicode_and_empty_strings():
    encoded = encode_response(Response.ok(cameras=["Caméra arrière", ""]))
    assert "Caméra arrière".encode("utf-8") in encoded
    assert decode_response(encoded)["cameras"] == ["Caméra arrière", ""]


def test_decode_response_rejects_non_object():
    with pytest.raises(DecodeError):
        decode_response(b'"ok"')


@pytest.mark.parametrize("response", [
    Response.ok(),
    Response.ok(cameras=[]),
    Response.ok(cameras=["Back", "Front", "", "前置"]),
    Response.failure(""),
    Response.failure("Kamera nicht verfügbar"),
])
def test_response_survives_the_wire(sock_pair, response):
    a, b = sock_pair
    write_frame(a, encode_response(response))
    assert decode_response(read_frame(b)) == response.to_dict()


def test_deeply_nested_command_is_fatal():
    with pytest.raises(DecodeError) as exc_info:
        decode_command(b"[" * 200000)
    assert exc_info.value.fatal
    assert str(exc_info.value).startswith("Invalid JSON")


def test_response_with_lone_surrogate_still_encodes():
    encoded = encode_response(Response.failure("bad \ud800 label"))
    assert decode_response(encoded) == {"success": False, "error": "bad ? label"}
