"""
轮询模块
========

包含测点、设备、地址区间规划、应答处理、轮询调度和主站设备管理。
"""

from .points import ValueType, ByteOrder, MeasurementPoint, decode_value
from .device import Device, DeviceState
from .planner import merge_intervals, split_interval, plan_requests
from .correlator import PollCycle, PollCycleGate, ResponseCorrelator, ResponseThread
from .scheduler import PollingScheduler
from .transport_poller import TransportPoller, create_manager
from .master import ModbusMaster, PointSnapshot

__all__ = [
    "ValueType",
    "ByteOrder",
    "MeasurementPoint",
    "decode_value",
    "Device",
    "DeviceState",
    "merge_intervals",
    "split_interval",
    "plan_requests",
    "PollCycle",
    "PollCycleGate",
    "ResponseCorrelator",
    "ResponseThread",
    "PollingScheduler",
    "TransportPoller",
    "create_manager",
    "ModbusMaster",
    "PointSnapshot",
]
