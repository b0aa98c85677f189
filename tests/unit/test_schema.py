"""
Unit Tests for relay message schemas.
"""

import math

import pytest
from pydantic import ValidationError

from termrelay.backend.schema.terminal import (
    CaptureScrollbackMessage,
    InputMessage,
    PingMessage,
    ResizeMessage,
    clamp_dimension,
    parse_client_message,
)


class TestClampDimension:

    @pytest.mark.parametrize("value,expected", [
        (80, 80),
        ("120", 120),
        (40.9, 40),
        (-5, 1),
        (0.5, 1),
        (10_000, 500),
        (math.inf, 500),
    ])
    def test_clamped(self, value, expected):
        assert clamp_dimension(value, 24) == expected

    @pytest.mark.parametrize("value", [None, "abc", "", math.nan, 0, [80]])
    def test_junk_uses_default(self, value):
        assert clamp_dimension(value, 24) == 24


class TestParseClientMessage:

    def test_input(self):
        message = parse_client_message('{"type": "input", "data": "ls\\r"}')
        assert isinstance(message, InputMessage)
        assert message.data == "ls\r"

    def test_resize_clamps(self):
        message = parse_client_message('{"type": "resize", "cols": 0, "rows": 9000}')
        assert isinstance(message, ResizeMessage)
        assert (message.cols, message.rows) == (80, 500)

    def test_ping_and_capture(self):
        assert isinstance(parse_client_message('{"type": "ping"}'), PingMessage)
        assert isinstance(parse_client_message('{"type": "capture-scrollback"}'), CaptureScrollbackMessage)

    @pytest.mark.parametrize("raw", ["", "nope", "[]", '{"type": "exec"}', '{"data": "x"}', '{"type": "input"}'])
    def test_invalid_frames_raise(self, raw):
        with pytest.raises(ValidationError):
            parse_client_message(raw)
