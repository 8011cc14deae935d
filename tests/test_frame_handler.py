"""
数据帧处理器测试
================

测试FrameHandler读请求封装、应答解析和16进制文本转换。
"""

import pytest

from modbus_poller.core.checksum import append_crc, is_crc_valid
from modbus_poller.core.frame_handler import (
    FrameHandler,
    ReadRequest,
    parse_hex_text,
    to_hex_text,
)


class TestPackReadRequest:
    """读请求封装测试"""

    def test_known_frame(self):
        request = FrameHandler.pack_read_request(1, 3, 0, 1)
        assert request.frame == bytes.fromhex("010300000001840A")
        assert request.text == "01 03 00 00 00 01 84 0A"

    def test_big_endian_fields(self):
        """起始地址和数量为大端"""
        request = FrameHandler.pack_read_request(0x11, 4, 0x1234, 0x0062)
        assert request.frame[:6] == bytes([0x11, 0x04, 0x12, 0x34, 0x00, 0x62])
        assert is_crc_valid(request.frame)

    def test_fields_kept(self):
        request = FrameHandler.pack_read_request(2, 3, 100, 10)
        assert (request.slave_id, request.function, request.start_address, request.count) == (2, 3, 100, 10)
        assert request.end_address == 109

    @pytest.mark.parametrize(
        "slave_id, start, count",
        [(256, 0, 1), (-1, 0, 1), (1, 65536, 1), (1, 0, 0), (1, 65535, 2)],
    )
    def test_out_of_range(self, slave_id, start, count):
        with pytest.raises(ValueError):
            FrameHandler.pack_read_request(slave_id, 3, start, count)


class TestUnpackReadRequest:
    """读请求解析测试"""

    def test_unpack_packed(self):
        request = FrameHandler.pack_read_request(7, 4, 300, 62)
        assert FrameHandler.unpack_read_request(request.frame) == request

    def test_bad_crc(self):
        frame = bytearray(FrameHandler.pack_read_request(7, 4, 300, 62).frame)
        frame[-1] ^= 0x01
        assert FrameHandler.unpack_read_request(bytes(frame)) is None

    def test_wrong_length(self):
        assert FrameHandler.unpack_read_request(append_crc(b"\x01\x03\x00")) is None


class TestUnpackResponse:
    """应答解析测试"""

    def test_unpack_success(self):
        frame = append_crc(bytes.fromhex("010304002A0001"))
        response = FrameHandler.unpack_response(frame)

        assert response is not None
        assert response.slave_id == 1
        assert response.function == 3
        assert response.byte_count == 4
        assert response.register_count == 2
        assert response.payload == b"\x00\x2A\x00\x01"
        assert not response.is_exception

    def test_insufficient_data(self):
        assert FrameHandler.unpack_response(b"\x01\x03\x00") is None

    def test_empty(self):
        assert FrameHandler.unpack_response(b"") is None

    def test_bad_crc(self):
        frame = bytearray(append_crc(bytes.fromhex("010304002A0001")))
        frame[4] ^= 0x10
        assert FrameHandler.unpack_response(bytes(frame)) is None

    def test_byte_count_mismatch(self):
        """声明的字节数与实际数据长度不一致"""
        frame = append_crc(bytes.fromhex("010306002A0001"))
        assert FrameHandler.unpack_response(frame) is None

    def test_exception_response(self):
        """异常应答可以解析，功能码带0x80标志"""
        frame = append_crc(bytes.fromhex("018302"))
        response = FrameHandler.unpack_response(frame)

        assert response is not None
        assert response.is_exception
        assert response.function == 0x83
        assert response.payload == b""


class TestHexText:
    """16进制文本转换测试"""

    def test_to_hex_text(self):
        assert to_hex_text(b"\x01\x03\xab") == "01 03 AB"
        assert to_hex_text(b"") == ""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("01 03 00 00", b"\x01\x03\x00\x00"),
            ("01-03-0a", b"\x01\x03\x0a"),
            ("0103FF", b"\x01\x03\xff"),
        ],
    )
    def test_parse_valid(self, text, expected):
        assert parse_hex_text(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "01 0G", "010", "hello"])
    def test_parse_invalid(self, text):
        assert parse_hex_text(text) is None

    def test_read_request_str(self):
        request = ReadRequest(1, 3, 0, 1, bytes.fromhex("010300000001840A"))
        assert str(request) == "01 03 00 00 00 01 84 0A"
