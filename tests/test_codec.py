"""Unit tests for the line-delimited frame codec"""

import json

import pytest

from termcanvas.errors import ErrorCode, ProtocolError
from termcanvas.protocol import Frame, FrameDecoder, FrameType, decode_record, encode_frame


def _line(obj) -> bytes:
    return json.dumps(obj).encode() + b"\n"


class TestEncode:
    """Test frame encoding"""

    def test_single_line_with_delimiter(self):
        data = encode_frame(Frame.alert("log", "line one\nline two"))
        assert data.endswith(b"\n")
        assert data.count(b"\n") == 1

    def test_wire_shape(self):
        data = encode_frame(Frame.selected({"action": "select", "date": "2025-01-01"}))
        assert json.loads(data) == {
            "type": "selected",
            "payload": {"action": "select", "date": "2025-01-01"},
        }


class TestDecodeRecord:
    """Test decoding a single record"""

    def test_decode_ready(self):
        frame = decode_record(b'{"type": "ready", "payload": {}}')
        assert frame.type == FrameType.READY
        assert frame.payload == {}

    def test_missing_payload_is_empty(self):
        assert decode_record(b'{"type": "ready"}').payload == {}

    def test_unknown_payload_fields_preserved(self):
        frame = decode_record(b'{"type": "selected", "payload": {"action": "pick", "seat": "12A"}}')
        assert frame.payload == {"action": "pick", "seat": "12A"}

    def test_invalid_json(self):
        with pytest.raises(ProtocolError) as exc_info:
            decode_record(b'{"type": "ready"')
        assert exc_info.value.error_code == ErrorCode.MALFORMED_FRAME
        assert exc_info.value.raw == b'{"type": "ready"'

    def test_non_object(self):
        with pytest.raises(ProtocolError):
            decode_record(b'["ready"]')

    @pytest.mark.parametrize("record", [
        b'{"type": "resize", "payload": {}}',
        b'{"payload": {}}',
        b'{"type": ["ready"], "payload": {}}',
    ])
    def test_unknown_type(self, record):
        with pytest.raises(ProtocolError) as exc_info:
            decode_record(record)
        assert exc_info.value.error_code == ErrorCode.UNKNOWN_FRAME_TYPE

    def test_missing_required_field(self):
        with pytest.raises(ProtocolError) as exc_info:
            decode_record(b'{"type": "cancelled", "payload": {}}')
        assert exc_info.value.error_code == ErrorCode.MALFORMED_FRAME

    def test_raw_preview_is_truncated(self):
        record = b'{"type": "' + b"x" * 1000
        with pytest.raises(ProtocolError) as exc_info:
            decode_record(record)
        assert len(exc_info.value.raw) == 200


class TestFrameDecoder:
    """Test incremental decoding"""

    def test_byte_at_a_time(self):
        decoder = FrameDecoder()
        data = encode_frame(Frame.ready()) + encode_frame(Frame.cancelled("q"))
        frames = []
        for i in range(len(data)):
            decoder.feed(data[i:i + 1])
            frames.extend(decoder.frames())
        assert [f.type for f in frames] == [FrameType.READY, FrameType.CANCELLED]
        assert decoder.buffered == 0

    def test_partial_frame_stays_buffered(self):
        decoder = FrameDecoder()
        decoder.feed(b'{"type": "rea')
        assert decoder.next_frame() is None
        assert decoder.buffered == 13
        decoder.feed(b'dy"}\n')
        assert decoder.next_frame().type == FrameType.READY

    def test_blank_lines_skipped(self):
        decoder = FrameDecoder()
        decoder.feed(b"\n\n" + encode_frame(Frame.ready()))
        assert decoder.next_frame().type == FrameType.READY

    def test_malformed_record_is_isolated(self):
        decoder = FrameDecoder()
        decoder.feed(b'{"type": "selec\n' + _line({"type": "ready", "payload": {}}))

        with pytest.raises(ProtocolError):
            decoder.next_frame()

        frame = decoder.next_frame()
        assert frame.type == FrameType.READY
        assert decoder.next_frame() is None

    def test_oversized_complete_record(self):
        decoder = FrameDecoder(max_frame_size=64)
        big = _line({"type": "alert", "payload": {"type": "x", "message": "y" * 100}})
        decoder.feed(big + encode_frame(Frame.ready()))

        with pytest.raises(ProtocolError) as exc_info:
            decoder.next_frame()
        assert exc_info.value.error_code == ErrorCode.FRAME_TOO_LARGE
        assert decoder.next_frame().type == FrameType.READY

    def test_oversized_unterminated_record_is_discarded(self):
        decoder = FrameDecoder(max_frame_size=64)
        decoder.feed(b"a" * 100)

        with pytest.raises(ProtocolError) as exc_info:
            decoder.next_frame()
        assert exc_info.value.error_code == ErrorCode.FRAME_TOO_LARGE
        assert decoder.buffered == 0

        # The rest of the oversized record is dropped without a second error
        decoder.feed(b"b" * 100)
        assert decoder.next_frame() is None
        decoder.feed(b"tail\n" + encode_frame(Frame.ready()))
        assert decoder.next_frame().type == FrameType.READY

    def test_reset(self):
        decoder = FrameDecoder()
        decoder.feed(b'{"type"')
        decoder.reset()
        assert decoder.buffered == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
