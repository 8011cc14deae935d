"""
IO线程模块
==========

接收端分帧。Modbus RTU没有统一的长度字段，依靠帧间静默判断一帧结束：
在静默时间内到达的字节都追加到缓存，连续 idle_ticks 个周期没有新数据，
或缓存达到最大帧长时，把缓存作为一帧输出。

读取和静默判断都在独立的后台线程中完成，每个周期只取走已到达的数据，
从不为等待一整帧而阻塞通道的读取。
"""

import queue
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .serial_manager import SerialManager
from .tcp_manager import TcpManager
from .frame_handler import to_hex_text
from .worker import BackgroundWorker, drain_queue
from ..config.constants import DEFAULT_TICK, DEFAULT_INBOUND_QUEUE_SIZE
from ..utils.logger import get_logger

logger = get_logger(__name__)

TransportManager = Union[SerialManager, TcpManager]


@dataclass
class IoFrame:
    """IO线程分出的一帧数据"""

    data: bytes
    timestamp: float = 0.0

    def __post_init__(self):
        """添加接收时间戳"""
        if self.timestamp == 0.0:
            self.timestamp = time.time()

    @property
    def text(self) -> str:
        return to_hex_text(self.data)


class FrameAssembler:
    """
    按帧间静默分帧的累积缓存

    只有一个状态：累积中。feed() 追加数据，tick() 推进静默计数，
    两者在满足条件时返回完整的一帧并清空缓存。
    """

    def __init__(self, idle_ticks: int, max_length: int):
        if idle_ticks <= 0:
            raise ValueError("idle_ticks必须大于0")
        if max_length <= 0:
            raise ValueError("max_length必须大于0")
        self.idle_ticks = idle_ticks
        self.max_length = max_length
        self._buffer = bytearray()
        self._idle = 0

    @property
    def pending(self) -> int:
        """缓存中尚未成帧的字节数"""
        return len(self._buffer)

    def feed(self, data: bytes) -> Optional[bytes]:
        """
        追加新到达的数据

        Returns:
            缓存达到最大帧长时返回整帧，否则返回None
        """
        if not data:
            return None
        self._buffer.extend(data)
        self._idle = 0
        if len(self._buffer) >= self.max_length:
            return self.flush()
        return None

    def tick(self) -> Optional[bytes]:
        """
        推进一个无数据的周期

        Returns:
            静默周期数达到阈值时返回整帧，否则返回None
        """
        if not self._buffer:
            return None
        self._idle += 1
        if self._idle >= self.idle_ticks:
            return self.flush()
        return None

    def flush(self) -> bytes:
        """输出缓存中的全部数据并清空缓存"""
        frame = bytes(self._buffer)
        self._buffer.clear()
        self._idle = 0
        return frame


class IoThread(BackgroundWorker):
    """
    IO线程类

    负责不间断地读取通道数据并分帧，将帧投递到队列中，
    应答处理线程通过队列获取数据进行处理。
    """

    worker_name = "io"

    def __init__(
        self,
        manager: TransportManager,
        idle_ticks: int,
        max_length: int,
        frame_queue_size: int = DEFAULT_INBOUND_QUEUE_SIZE,
        tick: float = DEFAULT_TICK,
        on_frame: Optional[Callable[[IoFrame], None]] = None,
        on_closed: Optional[Callable[[], None]] = None,
    ):
        """
        初始化IO线程

        Args:
            manager: 串口或TCP管理器
            idle_ticks: 连续多少个周期无数据判断为一帧结束
            max_length: 最大帧长
            frame_queue_size: 帧队列大小
            tick: 轮询周期(秒)
            on_frame: 每分出一帧时的回调
            on_closed: 通道被关闭（如对端断开）时的回调，只触发一次
        """
        super().__init__()
        self.manager = manager
        self.assembler = FrameAssembler(idle_ticks, max_length)
        self.frame_queue: "queue.Queue[IoFrame]" = queue.Queue(maxsize=frame_queue_size)
        self.tick = tick
        self.on_frame = on_frame
        self.on_closed = on_closed
        self._closed_reported = False

        # 统计信息
        self.frames_received = 0
        self.frames_dropped = 0

    def start(self) -> bool:
        if not self.manager.is_open:
            logger.error("通道未打开，无法启动IO线程")
            return False
        self._closed_reported = False
        return super().start()

    def clear(self) -> None:
        """丢弃缓存中的半帧和队列中尚未处理的帧"""
        self.assembler.flush()
        drain_queue(self.frame_queue)

    def get_frame(self, timeout: Optional[float] = None) -> Optional[IoFrame]:
        """
        从队列获取帧数据

        Args:
            timeout: 超时时间(秒)，None表示阻塞等待

        Returns:
            成功返回IoFrame，超时返回None
        """
        try:
            return self.frame_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    @property
    def queue_size(self) -> int:
        return self.frame_queue.qsize()

    def get_statistics(self) -> dict:
        """获取IO线程统计信息"""
        return {
            "running": self.is_running,
            "queue_size": self.queue_size,
            "pending_bytes": self.assembler.pending,
            "frames_received": self.frames_received,
            "frames_dropped": self.frames_dropped,
            "read_errors": self.errors,
        }

    def poll(self) -> Optional[IoFrame]:
        """
        执行一个周期：取走通道中所有已到达的数据，或推进静默计数

        Returns:
            本周期分出的帧，没有则返回None
        """
        if not self.manager.is_open:
            self._report_closed()
            return None

        data = self.manager.read_available()
        raw = self.assembler.feed(data) if data else self.assembler.tick()
        if raw is None:
            return None

        frame = IoFrame(raw)
        self._queue_frame(frame)
        if self.on_frame:
            try:
                self.on_frame(frame)
            except Exception as e:
                logger.error(f"接收回调异常: {e}")
        return frame

    def _run_once(self) -> None:
        self.poll()
        self._stop_event.wait(self.tick)

    def _report_closed(self) -> None:
        if self._closed_reported:
            return
        self._closed_reported = True
        logger.warning(f"通道 {self.manager.name} 已关闭，停止接收")
        if self.on_closed:
            self.on_closed()

    def _queue_frame(self, frame: IoFrame) -> None:
        """
        将帧加入队列

        Args:
            frame: 要加入的帧
        """
        try:
            self.frame_queue.put_nowait(frame)
            self.frames_received += 1

        except queue.Full:
            # 队列满，丢弃最老的帧
            try:
                self.frame_queue.get_nowait()
                self.frame_queue.put_nowait(frame)
                self.frames_dropped += 1
                logger.warning("帧队列满，丢弃旧帧")
            except (queue.Empty, queue.Full):
                self.frames_dropped += 1
