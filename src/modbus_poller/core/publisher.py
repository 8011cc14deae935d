"""
发送线程模块
============

发送队列的唯一消费者：取出一帧写入通道，然后等待一段时间再发送下一帧。
"""

import queue
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .frame_handler import parse_hex_text, to_hex_text
from .io_thread import TransportManager
from .worker import BackgroundWorker, drain_queue
from ..config.constants import DEFAULT_OUTBOUND_QUEUE_SIZE, DEFAULT_SEND_INTERVAL
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class OutboundFrame:
    """待发送的一帧"""

    data: bytes
    delay: float  # 发送完成后等待的时间，期间不会发送其他帧


class PublishThread(BackgroundWorker):
    """发送线程"""

    worker_name = "publish"

    def __init__(
        self,
        manager: TransportManager,
        queue_size: int = DEFAULT_OUTBOUND_QUEUE_SIZE,
        send_interval: float = DEFAULT_SEND_INTERVAL,
        on_sent: Optional[Callable[[bytes], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
    ):
        """
        初始化发送线程

        Args:
            manager: 串口或TCP管理器
            queue_size: 发送队列大小
            send_interval: 默认的发送后等待时间(秒)
            on_sent: 每成功发送一帧时的回调
            on_error: 写入通道失败时的回调
        """
        super().__init__()
        self.manager = manager
        self.send_interval = send_interval
        self.on_sent = on_sent
        self.on_error = on_error
        self.outbound_queue: "queue.Queue[OutboundFrame]" = queue.Queue(maxsize=queue_size)

        self.frames_sent = 0
        self.send_failures = 0

    def clear(self) -> int:
        """丢弃尚未发送的帧，返回丢弃的数量"""
        dropped = drain_queue(self.outbound_queue)
        if dropped:
            logger.debug(f"丢弃未发送的 {dropped} 帧")
        return dropped

    def enqueue(self, message: Union[bytes, str], delay: Optional[float] = None) -> bool:
        """
        发送帧入队

        Args:
            message: 字节数据，或以空格/'-'分隔的16进制文本
            delay: 发送完成后的等待时间，None使用默认值

        Returns:
            入队成功返回True；数据为空、不是合法16进制或队列已满返回False
        """
        data = parse_hex_text(message) if isinstance(message, str) else bytes(message or b"")
        if not data:
            logger.warning(f"发送数据无效: {message!r}")
            return False

        try:
            self.outbound_queue.put_nowait(
                OutboundFrame(data, self.send_interval if delay is None else delay)
            )
            return True
        except queue.Full:
            logger.warning("发送队列已满，丢弃该帧")
            return False

    def publish(self, data: bytes) -> bool:
        """
        立即写入通道

        Returns:
            写入成功返回True，通道未打开或写入失败返回False
        """
        if not self.manager.is_open:
            logger.error(f"通道 {self.manager.name} 未打开，无法发送")
            return False
        if not self.manager.write(data):
            return False
        self.frames_sent += 1
        logger.debug(f"发送:{to_hex_text(data)}")
        if self.on_sent:
            try:
                self.on_sent(data)
            except Exception as e:
                logger.error(f"发送回调异常: {e}")
        return True

    def get_statistics(self) -> dict:
        return {
            "running": self.is_running,
            "queue_size": self.outbound_queue.qsize(),
            "frames_sent": self.frames_sent,
            "send_failures": self.send_failures,
        }

    def _run_once(self) -> None:
        # 阻塞等待队列非空，超时后回到循环检查停止信号
        try:
            frame = self.outbound_queue.get(timeout=0.1)
        except queue.Empty:
            return

        if not self.publish(frame.data):
            self.send_failures += 1
            if self.on_error:
                self.on_error(f"写入通道 {self.manager.name} 失败")
            return

        if frame.delay > 0:
            self._stop_event.wait(frame.delay)
