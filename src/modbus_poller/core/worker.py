"""
后台线程基类
============

接收、发送、应答处理和轮询调度都是常驻的后台循环，
统一由该基类负责线程的启动、停止和异常计数。
"""

import queue
import threading
import time
from typing import Optional

from ..utils.logger import get_logger

logger = get_logger(__name__)


def drain_queue(q: queue.Queue) -> int:
    """丢弃队列中的全部元素，返回丢弃的数量"""
    dropped = 0
    while True:
        try:
            q.get_nowait()
        except queue.Empty:
            return dropped
        dropped += 1


class BackgroundWorker:
    """
    后台循环线程

    子类实现 _run_once()，基类在线程中反复调用，直到收到停止信号。
    停止是协作式的，在两次迭代之间生效。
    """

    #: 线程名，子类覆盖
    worker_name = "worker"
    #: 迭代异常后的等待时间(秒)
    error_delay = 0.01

    def __init__(self):
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._running = False
        self.errors = 0

    def start(self) -> bool:
        """
        启动后台线程

        Returns:
            启动成功返回True，失败返回False
        """
        if self.is_running:
            logger.warning(f"{self.worker_name}线程已经在运行")
            return True

        try:
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._loop, name=self.worker_name, daemon=True)
            self._running = True
            self._thread.start()
            logger.debug(f"{self.worker_name}线程已启动")
            return True

        except Exception as e:
            self._running = False
            logger.error(f"启动{self.worker_name}线程失败: {e}")
            return False

    def stop(self, timeout: float = 2.0) -> bool:
        """
        停止后台线程

        Args:
            timeout: 等待线程结束的超时时间(秒)

        Returns:
            停止成功返回True，超时返回False
        """
        self._stop_event.set()
        self._on_stop()

        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning(f"{self.worker_name}线程未在{timeout}秒内结束")
                return False

        self._running = False
        return True

    @property
    def is_running(self) -> bool:
        """检查线程是否在运行"""
        return self._running and self._thread is not None and self._thread.is_alive()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def _loop(self) -> None:
        """线程主循环"""
        try:
            while not self._stop_event.is_set():
                try:
                    self._run_once()
                except Exception as e:
                    self.errors += 1
                    logger.error(f"{self.worker_name}线程异常: {e}")
                    time.sleep(self.error_delay)
        finally:
            self._running = False
            logger.debug(f"{self.worker_name}线程已结束")

    def _run_once(self) -> None:
        raise NotImplementedError

    def _on_stop(self) -> None:
        """收到停止请求时调用，用于唤醒阻塞中的等待"""

    def __enter__(self):
        """支持with语句"""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.stop()
