"""
设备模块
========

一个从站设备：绑定一个通道，持有测点列表和由测点生成的请求帧列表。
"""

import threading
import time
from enum import Enum
from typing import Iterable, Optional, Tuple

from ..config.constants import MAX_SLAVE_ID, DEFAULT_OFFLINE_AFTER
from ..config.settings import TransportConfig
from ..core.frame_handler import ReadRequest
from ..utils.logger import get_logger
from .planner import plan_requests
from .points import ByteOrder, MeasurementPoint

logger = get_logger(__name__)


class DeviceState(str, Enum):
    """设备通讯状态"""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class Device:
    """
    Modbus从站设备

    测点列表采用写时复制：每次增删都换成新的元组，读取方拿到的快照不会被修改。
    请求帧列表在测点变化后标记为过期，下次读取时才重新生成。
    """

    def __init__(
        self,
        slave_id: int,
        transport: TransportConfig,
        name: str = "未命名",
        points: Iterable[MeasurementPoint] = (),
        byte_order: ByteOrder = ByteOrder.ABCD,
        remark: str = "",
        offline_after: Optional[int] = None,
    ):
        if not 0 <= slave_id <= MAX_SLAVE_ID:
            raise ValueError(f"从站地址超出范围: {slave_id}")
        if offline_after is not None and offline_after <= 0:
            raise ValueError("offline_after必须大于0")
        self.slave_id = slave_id
        self.transport = transport
        self.name = name
        self.byte_order = ByteOrder(byte_order)
        self.remark = remark
        # None 表示沿用主站轮询配置中的离线阈值
        self.offline_after = offline_after
        self.enabled = True

        self._lock = threading.Lock()
        self._points: Tuple[MeasurementPoint, ...] = tuple(points)
        self._plan: Tuple[ReadRequest, ...] = ()
        self._plan_dirty = True

        self.state = DeviceState.UNKNOWN
        self.last_response_time: Optional[float] = None
        self._missed = 0

    @property
    def transport_key(self) -> str:
        return self.transport.transport_key

    @property
    def points(self) -> Tuple[MeasurementPoint, ...]:
        """测点快照"""
        return self._points

    @property
    def request_plan(self) -> Tuple[ReadRequest, ...]:
        """读取所有测点的请求帧，测点变化后首次访问时重新生成"""
        with self._lock:
            if self._plan_dirty:
                self._plan = plan_requests(
                    self.slave_id, self._points, self.transport.max_read_span
                )
                self._plan_dirty = False
                logger.debug(f"{self} 生成请求帧 {len(self._plan)} 条")
            return self._plan

    def invalidate_plan(self) -> None:
        """标记请求帧过期"""
        with self._lock:
            self._plan_dirty = True

    def add_point(self, point: MeasurementPoint) -> MeasurementPoint:
        with self._lock:
            self._points = self._points + (point,)
            self._plan_dirty = True
        return point

    def add_point_after(self, point: Optional[MeasurementPoint] = None) -> MeasurementPoint:
        """
        在指定测点之后添加一个新测点

        新测点与指定测点存储区、类型相同，地址紧接指定测点的末地址。
        未指定或测点不属于本设备时，在末尾添加一个默认测点。
        """
        with self._lock:
            points = list(self._points)
            if point is None or point not in points:
                new_point = MeasurementPoint(0)
                points.append(new_point)
            else:
                new_point = MeasurementPoint(
                    point.last_word_address + 1,
                    register_type=point.register_type,
                    value_type=point.value_type,
                )
                points.insert(points.index(point) + 1, new_point)
            self._points = tuple(points)
            self._plan_dirty = True
        return new_point

    def remove_point(self, point: MeasurementPoint) -> bool:
        with self._lock:
            if point not in self._points:
                return False
            self._points = tuple(p for p in self._points if p != point)
            self._plan_dirty = True
        return True

    def clear_points(self) -> None:
        with self._lock:
            self._points = ()
            self._plan_dirty = True

    def mark_response(self, timestamp: Optional[float] = None) -> None:
        """收到本设备的有效应答"""
        self.last_response_time = time.time() if timestamp is None else timestamp
        self._missed = 0
        if self.state is not DeviceState.ONLINE:
            logger.info(f"{self} 在线")
        self.state = DeviceState.ONLINE

    def mark_missed(self) -> None:
        """本设备的一次请求未收到应答"""
        self._missed += 1
        limit = self.offline_after or DEFAULT_OFFLINE_AFTER
        if self._missed >= limit and self.state is not DeviceState.OFFLINE:
            self.state = DeviceState.OFFLINE
            logger.warning(f"{self} 连续{self._missed}次无应答，判定离线")

    def __str__(self) -> str:
        return f"{self.name} 从站:{self.slave_id}"
