"""Tests for the line codec."""

import orjson
import pytest

from agentline.exceptions import INVALID_REQUEST, PARSE_ERROR, InvalidRequestError, ParseError
from agentline.protocol.codec import MessageCodec
from agentline.protocol.messages import JsonRpcMessage


@pytest.fixture
def codec():
    return MessageCodec()


def test_decode_request(codec):
    msg = codec.decode('{"jsonrpc": "2.0", "id": 7, "method": "tools/list"}')
    assert msg.is_request
    assert msg.id == 7
    assert msg.method == "tools/list"


def test_decode_string_id_notification_and_response(codec):
    assert codec.decode(b'{"jsonrpc": "2.0", "id": "abc", "method": "x"}').id == "abc"
    assert codec.decode('{"jsonrpc": "2.0", "method": "initialized"}').is_notification
    assert codec.decode('{"jsonrpc": "2.0", "id": 1, "result": {}}').is_response


@pytest.mark.parametrize("line", ["{not json", "", "'single'"])
def test_decode_rejects_invalid_json(codec, line):
    with pytest.raises(ParseError) as exc:
        codec.decode(line)
    assert exc.value.code == PARSE_ERROR


@pytest.mark.parametrize("line", ["[1, 2]", '"text"', '{"params": [1]}'])
def test_decode_rejects_non_envelopes(codec, line):
    with pytest.raises(InvalidRequestError) as exc:
        codec.decode(line)
    assert exc.value.code == INVALID_REQUEST
    assert exc.value.request_id is None


@pytest.mark.parametrize(
    ("line", "request_id"),
    [
        ('{"jsonrpc": "2.0", "id": 7, "method": "tools/list", "params": []}', 7),
        ('{"jsonrpc": "2.0", "id": "abc", "method": 42}', "abc"),
        ('{"jsonrpc": "2.0", "id": true, "method": "x", "params": 1}', None),
    ],
)
def test_invalid_envelope_keeps_readable_id(codec, line, request_id):
    with pytest.raises(InvalidRequestError) as exc:
        codec.decode(line)
    assert exc.value.request_id == request_id


def test_encode_is_one_line(codec):
    data = codec.encode(JsonRpcMessage.success(3, {"text": "a\nb"}))
    assert data.endswith(b"\n")
    assert data.count(b"\n") == 1
    assert orjson.loads(data) == {"jsonrpc": "2.0", "id": 3, "result": {"text": "a\nb"}}


def test_encode_error_omits_result(codec):
    wire = orjson.loads(codec.encode(JsonRpcMessage.err(1, -32601, "nope")))
    assert "result" not in wire
    assert wire["error"] == {"code": -32601, "message": "nope"}
