"""Testes do parsing de frames do call leg."""

from __future__ import annotations

from speechbridge.server.transport import InboundFrame
from speechbridge.server.ws_protocol import (
    AudioFrameResult,
    RequestResult,
    ResponseResult,
    parse_frame,
)


class TestParseFrame:
    def test_binary_frame_is_audio(self) -> None:
        result = parse_frame(InboundFrame(data=b"\x00\x01", is_binary=True))
        assert result == AudioFrameResult(data=b"\x00\x01")

    def test_binary_json_is_still_audio(self) -> None:
        raw = b'{"request": "get"}'
        result = parse_frame(InboundFrame(data=raw, is_binary=True))
        assert isinstance(result, AudioFrameResult)
        assert result.data == raw

    def test_request_message(self) -> None:
        result = parse_frame(
            InboundFrame(data='{"request": "get", "id": "1", "params": ["codec"]}', is_binary=False)
        )
        assert isinstance(result, RequestResult)
        assert result.message["id"] == "1"

    def test_response_message(self) -> None:
        result = parse_frame(InboundFrame(data='{"response": "set", "id": "9"}', is_binary=False))
        assert isinstance(result, ResponseResult)

    def test_invalid_json_returns_none(self) -> None:
        assert parse_frame(InboundFrame(data="not json", is_binary=False)) is None

    def test_non_object_returns_none(self) -> None:
        assert parse_frame(InboundFrame(data='"hello"', is_binary=False)) is None
        assert parse_frame(InboundFrame(data="[]", is_binary=False)) is None

    def test_object_without_request_or_response_returns_none(self) -> None:
        assert parse_frame(InboundFrame(data='{"event": "ping"}', is_binary=False)) is None
