"""
测点模块
========

测点描述一个寄存器地址上的类型化数据，以及数值的解码规则。
"""

import struct
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from ..config.constants import RegisterType, FLOAT_DECIMALS, MAX_REGISTER_ADDRESS
from ..core.frame_handler import to_hex_text


class ValueType(str, Enum):
    """测点数据类型"""

    UINT16 = "uint16"
    INT16 = "int16"
    UINT32 = "uint32"
    INT32 = "int32"
    UINT64 = "uint64"
    INT64 = "int64"
    FLOAT = "float"
    DOUBLE = "double"
    HEX = "hex"  # 原始数据，不做数值解码

    @property
    def word_width(self) -> int:
        """占用的寄存器(字)数量"""
        return _WORD_WIDTH[self]

    @property
    def struct_format(self) -> Optional[str]:
        """大端解码格式，HEX类型返回None"""
        return _STRUCT_FORMAT.get(self)


_WORD_WIDTH = {
    ValueType.UINT16: 1,
    ValueType.INT16: 1,
    ValueType.UINT32: 2,
    ValueType.INT32: 2,
    ValueType.UINT64: 4,
    ValueType.INT64: 4,
    ValueType.FLOAT: 2,
    ValueType.DOUBLE: 4,
    ValueType.HEX: 1,
}

_STRUCT_FORMAT = {
    ValueType.UINT16: ">H",
    ValueType.INT16: ">h",
    ValueType.UINT32: ">I",
    ValueType.INT32: ">i",
    ValueType.UINT64: ">Q",
    ValueType.INT64: ">q",
    ValueType.FLOAT: ">f",
    ValueType.DOUBLE: ">d",
}


class ByteOrder(str, Enum):
    """
    多字节数据的字节序

    以32位数据的4个字节ABCD（A为最高字节）为例，表示寄存器中的排列顺序。
    ABCD为标准Modbus大端。
    """

    ABCD = "ABCD"
    BADC = "BADC"  # 字内字节交换
    CDAB = "CDAB"  # 字交换
    DCBA = "DCBA"  # 小端


def reorder_bytes(raw: bytes, byte_order: ByteOrder) -> bytes:
    """把寄存器中的原始字节按字节序调整为大端顺序"""
    if byte_order is ByteOrder.ABCD:
        return raw
    words = [raw[i:i + 2] for i in range(0, len(raw), 2)]
    if byte_order in (ByteOrder.BADC, ByteOrder.DCBA):
        words = [w[::-1] for w in words]
    if byte_order in (ByteOrder.CDAB, ByteOrder.DCBA):
        words.reverse()
    return b"".join(words)


def decode_value(
    value_type: ValueType,
    payload: bytes,
    offset: int,
    byte_order: ByteOrder = ByteOrder.ABCD,
) -> Union[int, float, str]:
    """
    从寄存器数据中解码一个值

    Args:
        value_type: 数据类型
        payload: 应答帧中的寄存器数据
        offset: 字节偏移
        byte_order: 字节序

    Returns:
        解码后的值。FLOAT保留 FLOAT_DECIMALS 位小数，HEX返回原始数据的16进制文本

    Raises:
        ValueError: 数据长度不足时抛出
    """
    size = value_type.word_width * 2
    raw = payload[offset:offset + size]
    if offset < 0 or len(raw) != size:
        raise ValueError(f"数据长度不足: 偏移={offset}, 需要{size}字节, 共{len(payload)}字节")

    if value_type is ValueType.HEX:
        return to_hex_text(raw)

    value = struct.unpack(value_type.struct_format, reorder_bytes(raw, byte_order))[0]
    if value_type is ValueType.FLOAT:
        return round(value, FLOAT_DECIMALS)
    return value


@dataclass(eq=False)
class MeasurementPoint:
    """测点，按对象身份比较"""

    register_address: int  # 寄存器地址
    register_type: RegisterType = RegisterType.HOLDING  # 存储区
    value_type: ValueType = ValueType.UINT16  # 数据类型
    name: str = ""  # 测点名
    value: Any = None  # 最近一次解码的值
    update_time: Optional[float] = None  # 最近一次更新时间

    def __post_init__(self):
        """参数验证"""
        self.register_type = RegisterType(self.register_type)
        self.value_type = ValueType(self.value_type)
        if not 0 <= self.register_address <= MAX_REGISTER_ADDRESS:
            raise ValueError(f"寄存器地址超出范围: {self.register_address}")
        if self.last_word_address > MAX_REGISTER_ADDRESS:
            raise ValueError(f"测点 {self.register_address} 的末地址超出范围")
        if not self.name:
            self.name = f"{self.register_type.value}_{self.register_address}"

    @property
    def word_width(self) -> int:
        return self.value_type.word_width

    @property
    def last_word_address(self) -> int:
        """最后一个字的地址"""
        return self.register_address + self.word_width - 1

    def update(self, value: Any, timestamp: Optional[float] = None) -> None:
        """写入解码后的值，仅由应答处理线程调用"""
        self.value = value
        self.update_time = time.time() if timestamp is None else timestamp

    def __str__(self) -> str:
        return f"{self.name}[{self.register_address}] {self.value_type.value}={self.value}"
