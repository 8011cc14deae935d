"""
配置管理
========

提供串口、TCP和轮询调度相关的配置类。
"""

from dataclasses import dataclass
from typing import Union

import serial

from .constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_TIMEOUT,
    DEFAULT_FRAME_TIMEOUT,
    DEFAULT_TCP_HOST,
    DEFAULT_TCP_PORT,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_CYCLE_TIMEOUT,
    DEFAULT_SEND_INTERVAL,
    DEFAULT_TICK,
    DEFAULT_OUTBOUND_QUEUE_SIZE,
    DEFAULT_INBOUND_QUEUE_SIZE,
    DEFAULT_OFFLINE_AFTER,
    DEFAULT_MAX_READ_SPAN,
    MAX_FRAME_LENGTH,
    SPLIT_CHUNK_WORDS,
)


def _validate_framing(frame_timeout: int, max_frame_length: int, max_read_span: int) -> None:
    """校验两种通道共有的分帧参数"""
    if frame_timeout <= 0:
        raise ValueError("frame_timeout必须大于0")
    if not 0 < max_frame_length <= MAX_FRAME_LENGTH:
        raise ValueError(f"max_frame_length必须在 1 到 {MAX_FRAME_LENGTH} 之间")
    if max_read_span <= SPLIT_CHUNK_WORDS:
        raise ValueError(f"max_read_span必须大于{SPLIT_CHUNK_WORDS}")


@dataclass
class SerialConfig:
    """串口配置类"""

    port: str  # 串口号
    baudrate: int = DEFAULT_BAUDRATE  # 波特率
    bytesize: int = serial.EIGHTBITS  # 数据位
    parity: str = serial.PARITY_NONE  # 校验位
    stopbits: float = serial.STOPBITS_ONE  # 停止位
    timeout: float = DEFAULT_TIMEOUT  # 读超时时间
    frame_timeout: int = DEFAULT_FRAME_TIMEOUT  # 帧间静默tick数
    max_frame_length: int = MAX_FRAME_LENGTH  # 单帧最大字节数
    max_read_span: int = DEFAULT_MAX_READ_SPAN  # 单次读取的最大地址跨度

    def __post_init__(self):
        """参数验证"""
        if not self.port:
            raise ValueError("port不能为空")
        if self.baudrate <= 0:
            raise ValueError("baudrate必须大于0")
        _validate_framing(self.frame_timeout, self.max_frame_length, self.max_read_span)

    @property
    def transport_key(self) -> str:
        """通道标识，使用同一串口的设备共享该通道"""
        return self.port

    def to_serial_kwargs(self) -> dict:
        """转换为serial.Serial的参数字典"""
        return {
            "port": self.port,
            "baudrate": self.baudrate,
            "bytesize": self.bytesize,
            "parity": self.parity,
            "stopbits": self.stopbits,
            "timeout": self.timeout,
        }


@dataclass
class TcpConfig:
    """TCP配置类（RTU over TCP，帧格式与串口一致）"""

    host: str = DEFAULT_TCP_HOST  # 服务器IP
    port: int = DEFAULT_TCP_PORT  # 服务器端口
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT  # 连接超时(秒)
    frame_timeout: int = DEFAULT_FRAME_TIMEOUT
    max_frame_length: int = MAX_FRAME_LENGTH
    max_read_span: int = DEFAULT_MAX_READ_SPAN

    def __post_init__(self):
        """参数验证"""
        if not self.host:
            raise ValueError("host不能为空")
        if not 0 < self.port <= 65535:
            raise ValueError("port必须在 1 到 65535 之间")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout必须大于0")
        _validate_framing(self.frame_timeout, self.max_frame_length, self.max_read_span)

    @property
    def transport_key(self) -> str:
        """通道标识"""
        return f"{self.host}:{self.port}"


TransportConfig = Union[SerialConfig, TcpConfig]


@dataclass
class PollConfig:
    """轮询调度配置类"""

    cycle_timeout: float = DEFAULT_CYCLE_TIMEOUT  # 等待应答的最长时间(秒)
    send_interval: float = DEFAULT_SEND_INTERVAL  # 发送完成后的等待时间(秒)
    tick: float = DEFAULT_TICK  # 接收线程轮询周期(秒)
    outbound_queue_size: int = DEFAULT_OUTBOUND_QUEUE_SIZE
    inbound_queue_size: int = DEFAULT_INBOUND_QUEUE_SIZE
    offline_after: int = DEFAULT_OFFLINE_AFTER  # 连续无应答次数达到该值判定离线

    def __post_init__(self):
        """参数验证"""
        if self.cycle_timeout <= 0:
            raise ValueError("cycle_timeout必须大于0")
        if self.send_interval < 0:
            raise ValueError("send_interval不能为负数")
        if self.tick <= 0:
            raise ValueError("tick必须大于0")
        if self.outbound_queue_size <= 0 or self.inbound_queue_size <= 0:
            raise ValueError("队列大小必须大于0")
        if self.offline_after <= 0:
            raise ValueError("offline_after必须大于0")
