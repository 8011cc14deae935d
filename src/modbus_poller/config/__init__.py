"""
配置模块
=======

包含协议常量定义和配置管理功能。
"""

from .constants import *
from .settings import *

__all__ = [
    # 常量
    "FunctionCode",
    "RegisterType",
    "MAX_FRAME_LENGTH",
    "DEFAULT_MAX_READ_SPAN",
    "FLOAT_DECIMALS",
    # 配置
    "SerialConfig",
    "TcpConfig",
    "PollConfig",
    "TransportConfig",
]
