"""
校验算法模块
============

提供Modbus RTU帧使用的CRC16校验算法。
"""

import struct

from ..config.constants import CRC_FORMAT, CRC_SIZE


def calculate_crc16_modbus(data: bytes) -> int:
    """
    计算CRC16校验码（Modbus格式）

    多项式0xA001（0x8005反序），初始值0xFFFF。
    把数据连同其小端校验码一起计算，结果为0。

    Args:
        data: 需要计算CRC的字节数据，允许为空

    Returns:
        CRC16校验码

    Raises:
        TypeError: 当输入不是bytes类型时抛出

    Examples:
        >>> hex(calculate_crc16_modbus(bytes.fromhex('010300000001')))
        '0xa84'
        >>> calculate_crc16_modbus(b'')
        65535
    """
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError("输入数据必须是bytes类型")

    crc = 0xFFFF
    polynomial = 0xA001

    for byte in data:
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ polynomial
            else:
                crc >>= 1

    return crc


def append_crc(data: bytes) -> bytes:
    """在数据末尾追加校验码（低字节在前）"""
    return bytes(data) + struct.pack(CRC_FORMAT, calculate_crc16_modbus(data))


def is_crc_valid(frame: bytes) -> bool:
    """
    校验一帧数据的CRC

    Args:
        frame: 包含末尾2字节校验码的完整帧

    Returns:
        除末尾2字节外的数据计算出的CRC与末尾2字节（小端）相同时返回True，
        不足2字节的帧返回False
    """
    if len(frame) < CRC_SIZE:
        return False
    received = struct.unpack(CRC_FORMAT, bytes(frame[-CRC_SIZE:]))[0]
    return calculate_crc16_modbus(bytes(frame[:-CRC_SIZE])) == received
