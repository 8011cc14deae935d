"""
Modbus主站轮询工具
==================

通过串口(RTU)或TCP(RTU over TCP)轮询Modbus从站设备，把寄存器数据解码为类型化的测点值。

主要功能：
- CRC16校验
- 按帧间静默分帧
- 测点地址区间合并与拆分
- 单请求在途的轮询调度
- 应答与请求对应及数据解码

作者: lanford
版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "lanford"
__email__ = ""
__description__ = "Modbus主站轮询工具"

# 导出主要类
from .config.settings import SerialConfig, TcpConfig, PollConfig
from .config.constants import RegisterType
from .polling.points import ValueType, ByteOrder, MeasurementPoint
from .polling.device import Device
from .polling.master import ModbusMaster

__all__ = [
    "SerialConfig",
    "TcpConfig",
    "PollConfig",
    "RegisterType",
    "ValueType",
    "ByteOrder",
    "MeasurementPoint",
    "Device",
    "ModbusMaster",
]
