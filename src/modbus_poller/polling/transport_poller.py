"""
通道轮询模块
============

把一个通道上的各个后台线程组装起来：

    调度线程 --请求帧--> 发送队列 --> 发送线程 --> 通道
    通道 --> IO线程(分帧) --> 接收帧队列 --> 应答处理线程 --完成--> 门控 --> 调度线程
"""

import threading
from typing import Callable, Dict, Iterable, List, Optional

from ..config.settings import PollConfig, SerialConfig, TcpConfig, TransportConfig
from ..core.frame_handler import to_hex_text
from ..core.io_thread import IoFrame, IoThread, TransportManager
from ..core.publisher import PublishThread
from ..core.serial_manager import SerialManager
from ..core.tcp_manager import TcpManager
from ..utils.logger import get_logger
from .correlator import PollCycleGate, ResponseCorrelator, ResponseThread
from .device import Device
from .scheduler import PollingScheduler

logger = get_logger(__name__)

# 对外事件
EVENT_FRAME_SENT = "frame_sent"
EVENT_FRAME_RECEIVED = "frame_received"
EVENT_TRANSPORT_ERROR = "transport_error"
EVENTS = (EVENT_FRAME_SENT, EVENT_FRAME_RECEIVED, EVENT_TRANSPORT_ERROR)


def create_manager(config: TransportConfig) -> TransportManager:
    """根据配置类型创建串口或TCP管理器"""
    if isinstance(config, SerialConfig):
        return SerialManager(config)
    if isinstance(config, TcpConfig):
        return TcpManager(config)
    raise TypeError(f"不支持的通道配置: {type(config).__name__}")


class TransportPoller:
    """单个通道的轮询会话"""

    def __init__(
        self,
        config: TransportConfig,
        devices_provider: Callable[[], Iterable[Device]],
        poll_config: Optional[PollConfig] = None,
        manager: Optional[TransportManager] = None,
    ):
        """
        初始化通道轮询会话

        Args:
            config: 通道配置
            devices_provider: 返回绑定到本通道的设备
            poll_config: 轮询配置
            manager: 通道管理器，None时根据配置创建
        """
        self.config = config
        self.poll_config = poll_config or PollConfig()
        self.manager = manager if manager is not None else create_manager(config)
        self._listeners: Dict[str, List[Callable[[str], None]]] = {name: [] for name in EVENTS}
        self._lock = threading.RLock()
        self._active = False

        pc = self.poll_config
        self.gate = PollCycleGate()
        self.io_thread = IoThread(
            self.manager,
            idle_ticks=config.frame_timeout,
            max_length=config.max_frame_length,
            frame_queue_size=pc.inbound_queue_size,
            tick=pc.tick,
            on_frame=self._on_frame_received,
            on_closed=lambda: self._on_transport_error(f"通道 {self.key} 已断开"),
        )
        self.publisher = PublishThread(
            self.manager,
            queue_size=pc.outbound_queue_size,
            send_interval=pc.send_interval,
            on_sent=self._on_frame_sent,
            on_error=self._on_transport_error,
        )
        self.correlator = ResponseCorrelator(self.gate)
        self.response_thread = ResponseThread(self.correlator, self.io_thread.get_frame)
        self.scheduler = PollingScheduler(
            self.gate,
            devices_provider,
            self.publisher.enqueue,
            cycle_timeout=pc.cycle_timeout,
        )

    @property
    def key(self) -> str:
        return self.config.transport_key

    @property
    def is_active(self) -> bool:
        return self._active

    def add_listener(self, event: str, callback: Callable[[str], None]) -> None:
        """
        注册事件回调

        Args:
            event: frame_sent / frame_received / transport_error
            callback: 参数为帧的16进制文本或错误信息
        """
        if event not in self._listeners:
            raise ValueError(f"未知事件: {event}")
        self._listeners[event].append(callback)

    def start(self) -> bool:
        """
        打开通道并启动全部后台线程

        Returns:
            成功返回True；通道打开失败返回False并触发 transport_error
        """
        with self._lock:
            if self._active:
                return True

            if not self.manager.open():
                self._emit(EVENT_TRANSPORT_ERROR, f"打开通道 {self.key} 失败")
                return False
            # 丢弃打开前残留的数据，避免与第一条请求的应答拼成一帧
            self.manager.discard_input()
            # 上次停止时遗留在队列和分帧缓存中的数据属于旧会话
            self.io_thread.clear()
            self.publisher.clear()

            self._active = True
            workers = (self.io_thread, self.response_thread, self.publisher, self.scheduler)
            if not all(worker.start() for worker in workers):
                self.stop()
                self._emit(EVENT_TRANSPORT_ERROR, f"启动通道 {self.key} 的后台线程失败")
                return False

            logger.info(f"通道 {self.key} 开始轮询")
            return True

    def stop(self) -> None:
        """停止后台线程并关闭通道，可在任意线程中调用"""
        if self._deactivate():
            self._shutdown()

    def _deactivate(self) -> bool:
        """把会话标记为停止，只有第一个调用者返回True"""
        with self._lock:
            if not self._active:
                return False
            self._active = False
            return True

    def _shutdown(self) -> None:
        # 不持锁等待线程结束，后台线程中的错误处理可能同时调用 stop()
        for worker in (self.scheduler, self.publisher, self.response_thread, self.io_thread):
            worker.stop()
        self.manager.close()
        logger.info(f"通道 {self.key} 停止轮询")

    def get_statistics(self) -> dict:
        return {
            "active": self._active,
            "io": self.io_thread.get_statistics(),
            "publish": self.publisher.get_statistics(),
            "scheduler": self.scheduler.get_statistics(),
            "frames_accepted": self.correlator.frames_accepted,
            "frames_rejected": self.correlator.frames_rejected,
        }

    def _on_frame_sent(self, data: bytes) -> None:
        self._emit(EVENT_FRAME_SENT, to_hex_text(data))

    def _on_frame_received(self, frame: IoFrame) -> None:
        logger.debug(f"接收:{frame.text}")
        self._emit(EVENT_FRAME_RECEIVED, frame.text)

    def _on_transport_error(self, message: str) -> None:
        """通道错误：通知外部并停止本通道的轮询，直到重新启动"""
        if not self._deactivate():
            # 正常停止过程中关闭通道引起的，或已由其他线程报告
            return
        logger.error(message)
        self._emit(EVENT_TRANSPORT_ERROR, message)
        self._shutdown()

    def _emit(self, event: str, text: str) -> None:
        for callback in list(self._listeners[event]):
            try:
                callback(text)
            except Exception as e:
                logger.error(f"事件回调异常({event}): {e}")
