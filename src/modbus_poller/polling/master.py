"""
主站设备管理
============

管理所有设备，按通道分组启动轮询，并向展示层提供只读的测点快照和通讯消息。
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..config.settings import PollConfig
from ..utils.logger import get_logger
from ..utils.message_log import MessageLog, MessageType
from .device import Device, DeviceState
from .transport_poller import (
    TransportPoller,
    EVENTS,
    EVENT_FRAME_SENT,
    EVENT_FRAME_RECEIVED,
    EVENT_TRANSPORT_ERROR,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class PointSnapshot:
    """测点的只读快照"""

    device: str
    slave_id: int
    name: str
    register_type: str
    register_address: int
    value_type: str
    value: Any
    update_time: Optional[float]
    device_state: DeviceState


class ModbusMaster:
    """Modbus主站：设备管理与轮询控制"""

    def __init__(self, poll_config: Optional[PollConfig] = None, message_limit: Optional[int] = None):
        self.poll_config = poll_config or PollConfig()
        self.messages = MessageLog(message_limit) if message_limit else MessageLog()
        self._devices: Tuple[Device, ...] = ()
        self._pollers: Dict[str, TransportPoller] = {}
        self._listeners: Dict[str, List[Callable[[str, str], None]]] = {name: [] for name in EVENTS}
        self._lock = threading.RLock()
        self._status = False

    @property
    def status(self) -> bool:
        """是否处于轮询状态"""
        return self._status

    @property
    def devices(self) -> Tuple[Device, ...]:
        return self._devices

    @property
    def pollers(self) -> Dict[str, TransportPoller]:
        with self._lock:
            return dict(self._pollers)

    def add_device(self, device: Device) -> Device:
        with self._lock:
            if device not in self._devices:
                if device.offline_after is None:
                    device.offline_after = self.poll_config.offline_after
                self._devices = self._devices + (device,)
        return device

    def remove_device(self, device: Device) -> bool:
        with self._lock:
            if device not in self._devices:
                return False
            self._devices = tuple(d for d in self._devices if d is not device)
        return True

    def devices_on(self, transport_key: str) -> Tuple[Device, ...]:
        """绑定到指定通道的设备"""
        return tuple(d for d in self._devices if d.transport_key == transport_key)

    def add_listener(self, event: str, callback: Callable[[str, str], None]) -> None:
        """
        注册事件回调

        Args:
            event: frame_sent / frame_received / transport_error
            callback: callback(通道标识, 帧文本或错误信息)
        """
        if event not in self._listeners:
            raise ValueError(f"未知事件: {event}")
        self._listeners[event].append(callback)

    def start(self) -> bool:
        """
        启动所有通道的轮询

        Returns:
            所有通道都启动成功返回True
        """
        with self._lock:
            keys = []
            for device in self._devices:
                if device.transport_key not in keys:
                    keys.append(device.transport_key)
            self._status = True

        if not keys:
            logger.warning("没有需要轮询的设备")
        results = [self.start_transport(key) for key in keys]
        return all(results)

    def stop(self) -> None:
        """停止所有通道的轮询"""
        with self._lock:
            self._status = False
            keys = list(self._pollers)
        for key in keys:
            self.stop_transport(key)

    def start_transport(self, transport_key: str) -> bool:
        """启动单个通道的轮询"""
        with self._lock:
            devices = self.devices_on(transport_key)
            if not devices:
                logger.error(f"通道 {transport_key} 上没有设备")
                return False
            poller = self._pollers.get(transport_key)
            if poller is None:
                poller = self._create_poller(devices[0])
                self._pollers[transport_key] = poller

        ok = poller.start()
        self.messages.add(
            "开始轮询" if ok else "启动失败",
            MessageType.INFO if ok else MessageType.ERROR,
            transport_key,
        )
        return ok

    def stop_transport(self, transport_key: str) -> None:
        """停止单个通道的轮询"""
        with self._lock:
            poller = self._pollers.get(transport_key)
        if poller is not None and poller.is_active:
            poller.stop()
            self.messages.add("停止轮询", MessageType.INFO, transport_key)

    def snapshot(self) -> List[PointSnapshot]:
        """所有测点当前值的只读快照"""
        result = []
        for device in self._devices:
            for point in device.points:
                result.append(PointSnapshot(
                    device=device.name,
                    slave_id=device.slave_id,
                    name=point.name,
                    register_type=point.register_type.value,
                    register_address=point.register_address,
                    value_type=point.value_type.value,
                    value=point.value,
                    update_time=point.update_time,
                    device_state=device.state,
                ))
        return result

    def _create_poller(self, device: Device) -> TransportPoller:
        key = device.transport_key
        poller = TransportPoller(
            device.transport,
            lambda: self.devices_on(key),
            self.poll_config,
        )
        poller.add_listener(EVENT_FRAME_SENT, lambda text: self._dispatch(EVENT_FRAME_SENT, key, text))
        poller.add_listener(EVENT_FRAME_RECEIVED, lambda text: self._dispatch(EVENT_FRAME_RECEIVED, key, text))
        poller.add_listener(EVENT_TRANSPORT_ERROR, lambda text: self._dispatch(EVENT_TRANSPORT_ERROR, key, text))
        return poller

    def _dispatch(self, event: str, key: str, text: str) -> None:
        message_type = {
            EVENT_FRAME_SENT: MessageType.SEND,
            EVENT_FRAME_RECEIVED: MessageType.RECEIVE,
            EVENT_TRANSPORT_ERROR: MessageType.ERROR,
        }[event]
        self.messages.add(text, message_type, key)
        for callback in list(self._listeners[event]):
            try:
                callback(key, text)
            except Exception as e:
                logger.error(f"事件回调异常({event}): {e}")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
