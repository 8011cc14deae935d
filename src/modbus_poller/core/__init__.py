"""
核心模块
========

包含CRC校验、数据帧处理、分帧、收发线程和通道管理等核心功能。
"""

from .checksum import calculate_crc16_modbus, append_crc, is_crc_valid
from .frame_handler import FrameHandler, ReadRequest, ResponseFrame, to_hex_text, parse_hex_text
from .serial_manager import SerialManager
from .tcp_manager import TcpManager
from .io_thread import FrameAssembler, IoFrame, IoThread
from .publisher import PublishThread

__all__ = [
    "calculate_crc16_modbus",
    "append_crc",
    "is_crc_valid",
    "FrameHandler",
    "ReadRequest",
    "ResponseFrame",
    "to_hex_text",
    "parse_hex_text",
    "SerialManager",
    "TcpManager",
    "FrameAssembler",
    "IoFrame",
    "IoThread",
    "PublishThread",
]
