"""
系统常量定义
============

定义Modbus RTU协议以及轮询调度中使用的各种常量。
"""

from enum import Enum, IntEnum
import struct
from typing import Final, Optional


class FunctionCode(IntEnum):
    """Modbus功能码枚举"""

    READ_COILS = 0x01  # 读线圈
    READ_DISCRETE_INPUTS = 0x02  # 读离散输入
    READ_HOLDING_REGISTERS = 0x03  # 读保持寄存器
    READ_INPUT_REGISTERS = 0x04  # 读输入寄存器
    WRITE_SINGLE_COIL = 0x05  # 写单个线圈
    WRITE_SINGLE_REGISTER = 0x06  # 写单个寄存器
    WRITE_MULTIPLE_COILS = 0x0F  # 写多个线圈
    WRITE_MULTIPLE_REGISTERS = 0x10  # 写多个寄存器


class RegisterType(str, Enum):
    """寄存器存储区"""

    HOLDING = "holding"  # 保持寄存器 0x03
    INPUT = "input"  # 输入寄存器 0x04

    @property
    def function_code(self) -> FunctionCode:
        """读取该存储区使用的功能码"""
        if self is RegisterType.HOLDING:
            return FunctionCode.READ_HOLDING_REGISTERS
        return FunctionCode.READ_INPUT_REGISTERS

    @classmethod
    def from_function_code(cls, code: int) -> Optional["RegisterType"]:
        """根据功能码获取存储区，非读寄存器功能码返回None"""
        if code == FunctionCode.READ_HOLDING_REGISTERS:
            return cls.HOLDING
        if code == FunctionCode.READ_INPUT_REGISTERS:
            return cls.INPUT
        return None


# 异常应答时功能码最高位置1
EXCEPTION_FLAG: Final[int] = 0x80

# 请求帧格式: 从站ID(1) 功能码(1) 起始地址(2) 寄存器数量(2)
REQUEST_HEADER_FORMAT: Final[str] = ">BBHH"
# 应答帧头部: 从站ID(1) 功能码(1) 字节数(1)
RESPONSE_HEADER_FORMAT: Final[str] = ">BBB"
# 校验码(2字节，低字节在前)
CRC_FORMAT: Final[str] = "<H"

REQUEST_HEADER_SIZE: Final[int] = struct.calcsize(REQUEST_HEADER_FORMAT)
RESPONSE_HEADER_SIZE: Final[int] = struct.calcsize(RESPONSE_HEADER_FORMAT)
CRC_SIZE: Final[int] = struct.calcsize(CRC_FORMAT)
READ_REQUEST_SIZE: Final[int] = REQUEST_HEADER_SIZE + CRC_SIZE  # 8字节
MIN_RESPONSE_SIZE: Final[int] = RESPONSE_HEADER_SIZE + CRC_SIZE  # 5字节

# 地址与从站ID范围
MAX_REGISTER_ADDRESS: Final[int] = 0xFFFF
MAX_SLAVE_ID: Final[int] = 0xFF

# ModbusRtu标准协议一帧最大长度是256字节
MAX_FRAME_LENGTH: Final[int] = 256

# 地址区间拆分
DEFAULT_MAX_READ_SPAN: Final[int] = 100  # 区间跨度小于该值时一帧读完
SPLIT_CHUNK_WORDS: Final[int] = 62  # 拆分后每帧读取的字数
SPLIT_OVERLAP_WORDS: Final[int] = 4  # 相邻两帧重叠的字数
SPLIT_STEP_WORDS: Final[int] = SPLIT_CHUNK_WORDS - SPLIT_OVERLAP_WORDS  # 58

# 浮点数保留的小数位
FLOAT_DECIMALS: Final[int] = 2

# 串口配置默认值
DEFAULT_BAUDRATE: Final[int] = 9600  # 默认波特率
DEFAULT_TIMEOUT: Final[float] = 0.1  # 串口读超时(秒)
DEFAULT_FRAME_TIMEOUT: Final[int] = 20  # 连续无数据判断为一帧结束(tick数)

# TCP配置默认值
DEFAULT_TCP_HOST: Final[str] = "127.0.0.1"
DEFAULT_TCP_PORT: Final[int] = 502
DEFAULT_CONNECT_TIMEOUT: Final[float] = 3.0  # 连接超时(秒)

# 轮询配置默认值
DEFAULT_CYCLE_TIMEOUT: Final[float] = 1.0  # 等待上一条指令应答的最长时间(秒)
DEFAULT_SEND_INTERVAL: Final[float] = 0.05  # 两帧发送之间的间隔(秒)
DEFAULT_TICK: Final[float] = 0.001  # 接收线程的轮询周期(秒)
DEFAULT_OUTBOUND_QUEUE_SIZE: Final[int] = 16  # 发送队列大小
DEFAULT_INBOUND_QUEUE_SIZE: Final[int] = 100  # 接收帧队列大小
DEFAULT_OFFLINE_AFTER: Final[int] = 3  # 连续多少次无应答判定设备离线
DEFAULT_MESSAGE_LIMIT: Final[int] = 200  # 诊断消息最多保留条数
