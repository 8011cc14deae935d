"""
数据帧处理模块
==============

负责Modbus RTU读请求帧的封装以及应答帧的解析。

请求帧格式：| 从站ID(1B) | 功能码(1B) | 起始地址(2B) | 寄存器数量(2B) | CRC(2B) |
应答帧格式：| 从站ID(1B) | 功能码(1B) | 字节数(1B) | 寄存器值(NB) | CRC(2B) |

除CRC为小端外，其余字段均为大端。
"""

import re
import struct
from dataclasses import dataclass
from typing import Optional, Union

from ..config.constants import (
    FunctionCode,
    EXCEPTION_FLAG,
    REQUEST_HEADER_FORMAT,
    RESPONSE_HEADER_FORMAT,
    RESPONSE_HEADER_SIZE,
    CRC_FORMAT,
    CRC_SIZE,
    READ_REQUEST_SIZE,
    MIN_RESPONSE_SIZE,
    MAX_REGISTER_ADDRESS,
    MAX_SLAVE_ID,
)
from .checksum import append_crc, is_crc_valid
from ..utils.logger import get_logger

logger = get_logger(__name__)

# 16进制文本只允许数字、字母a-f、空格和'-'
_HEX_TEXT_PATTERN = re.compile(r"^[0-9a-fA-F \-]*$")


@dataclass(frozen=True)
class ReadRequest:
    """读寄存器请求帧"""

    slave_id: int
    function: int
    start_address: int
    count: int
    frame: bytes

    @property
    def end_address(self) -> int:
        """本次读取的最后一个字地址"""
        return self.start_address + self.count - 1

    @property
    def text(self) -> str:
        return to_hex_text(self.frame)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class ResponseFrame:
    """读寄存器应答帧"""

    slave_id: int
    function: int
    byte_count: int
    payload: bytes
    crc: int

    @property
    def register_count(self) -> int:
        return self.byte_count // 2

    @property
    def is_exception(self) -> bool:
        """功能码最高位为1表示从站返回了异常应答"""
        return bool(self.function & EXCEPTION_FLAG)


class FrameHandler:
    """数据帧处理器"""

    @staticmethod
    def pack_read_request(
        slave_id: int, function: Union[FunctionCode, int], start_address: int, count: int
    ) -> ReadRequest:
        """
        封装读寄存器请求帧

        Args:
            slave_id: 从站地址
            function: 功能码(0x03/0x04)
            start_address: 起始寄存器地址
            count: 读取的寄存器数量

        Returns:
            带CRC校验码的请求帧

        Raises:
            ValueError: 字段超出协议范围时抛出

        Examples:
            >>> FrameHandler.pack_read_request(1, 3, 0, 1).text
            '01 03 00 00 00 01 84 0A'
        """
        if not 0 <= slave_id <= MAX_SLAVE_ID:
            raise ValueError(f"从站地址超出范围: {slave_id}")
        if not 0 <= start_address <= MAX_REGISTER_ADDRESS:
            raise ValueError(f"起始地址超出范围: {start_address}")
        if not 0 < count <= MAX_REGISTER_ADDRESS + 1 - start_address:
            raise ValueError(f"寄存器数量超出范围: {count}")

        body = struct.pack(REQUEST_HEADER_FORMAT, slave_id, int(function), start_address, count)
        return ReadRequest(slave_id, int(function), start_address, count, append_crc(body))

    @staticmethod
    def unpack_read_request(frame: bytes) -> Optional[ReadRequest]:
        """
        解析读寄存器请求帧

        Returns:
            解析成功返回ReadRequest，长度或校验错误返回None
        """
        if len(frame) != READ_REQUEST_SIZE or not is_crc_valid(frame):
            logger.debug(f"请求帧无效: {to_hex_text(frame)}")
            return None
        slave_id, function, start, count = struct.unpack(REQUEST_HEADER_FORMAT, frame[:-CRC_SIZE])
        return ReadRequest(slave_id, function, start, count, bytes(frame))

    @staticmethod
    def unpack_response(frame: bytes) -> Optional[ResponseFrame]:
        """
        解析读寄存器应答帧

        异常应答（功能码|0x80）只有一个异常码字节，同样可以解析，
        由调用方根据功能码判断。

        Args:
            frame: 接收到的完整数据帧

        Returns:
            解析成功返回ResponseFrame，失败返回None
        """
        try:
            if len(frame) < MIN_RESPONSE_SIZE:
                logger.debug(f"数据长度不足一帧: {len(frame)}")
                return None

            if not is_crc_valid(frame):
                logger.debug(f"CRC校验失败: {to_hex_text(frame)}")
                return None

            slave_id, function, byte_count = struct.unpack(
                RESPONSE_HEADER_FORMAT, frame[:RESPONSE_HEADER_SIZE]
            )

            if function & EXCEPTION_FLAG:
                # 异常应答: 从站ID 功能码 异常码 CRC
                exception_code = frame[2]
                logger.debug(f"从站{slave_id}返回异常应答: 功能码={function:#04x}, 异常码={exception_code}")
                return ResponseFrame(slave_id, function, 0, b"", struct.unpack(CRC_FORMAT, frame[-CRC_SIZE:])[0])

            actual_len = len(frame) - RESPONSE_HEADER_SIZE - CRC_SIZE
            if byte_count != actual_len:
                logger.debug(f"字节数不匹配: 声明长度={byte_count}, 实际长度={actual_len}")
                return None

            payload = bytes(frame[RESPONSE_HEADER_SIZE:RESPONSE_HEADER_SIZE + byte_count])
            crc = struct.unpack(CRC_FORMAT, frame[-CRC_SIZE:])[0]
            return ResponseFrame(slave_id, function, byte_count, payload, crc)

        except Exception as e:
            logger.error(f"解析应答帧失败: {e}")
            return None


def to_hex_text(data: bytes) -> str:
    """
    转换为以空格分隔的大写16进制文本

    Examples:
        >>> to_hex_text(b'\\x01\\x03')
        '01 03'
    """
    return " ".join(f"{b:02X}" for b in data)


def parse_hex_text(text: str) -> Optional[bytes]:
    """
    解析16进制文本，允许空格和'-'作为分隔符

    Returns:
        解析后的字节，文本为空或不是合法的16进制时返回None
    """
    if not text or not _HEX_TEXT_PATTERN.match(text):
        return None
    compact = text.replace(" ", "").replace("-", "")
    if not compact or len(compact) % 2:
        return None
    try:
        return bytes.fromhex(compact)
    except ValueError:
        return None
