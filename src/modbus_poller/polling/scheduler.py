"""
轮询调度模块
============

每个通道一个调度器：依次取出各设备的请求帧，等待上一条请求完成（或超时）后发送。
超时不会中止轮询，迟到的旧应答会因与新请求不对应而被丢弃。
"""

from typing import Callable, Iterable

from ..config.constants import DEFAULT_CYCLE_TIMEOUT
from ..core.frame_handler import ReadRequest
from ..core.worker import BackgroundWorker
from ..utils.logger import get_logger
from .correlator import PollCycle, PollCycleGate
from .device import Device

logger = get_logger(__name__)


class PollingScheduler(BackgroundWorker):
    """轮询调度器"""

    worker_name = "scheduler"

    def __init__(
        self,
        gate: PollCycleGate,
        devices_provider: Callable[[], Iterable[Device]],
        submit: Callable[[bytes], bool],
        cycle_timeout: float = DEFAULT_CYCLE_TIMEOUT,
    ):
        """
        初始化轮询调度器

        Args:
            gate: 本通道的请求门控
            devices_provider: 返回本通道设备列表的可调用对象，每轮调用一次
            submit: 把请求帧交给发送线程，返回是否入队成功
            cycle_timeout: 等待上一条请求应答的最长时间(秒)
        """
        super().__init__()
        self.gate = gate
        self.devices_provider = devices_provider
        self.submit = submit
        self.cycle_timeout = cycle_timeout

        # 统计信息
        self.requests_sent = 0
        self.timeouts = 0
        self.rounds = 0

    def start(self) -> bool:
        self.gate.reset()
        return super().start()

    def run_once(self) -> int:
        """
        执行一轮轮询：遍历所有启用设备的全部请求帧

        Returns:
            本轮发送的请求数
        """
        devices = [d for d in self.devices_provider() if d.enabled]
        sent = 0
        for device in devices:
            for request in device.request_plan:
                if self.stopping:
                    return sent
                self._wait_previous()
                if self._send(device, request):
                    sent += 1
        self.rounds += 1
        return sent

    def get_statistics(self) -> dict:
        return {
            "running": self.is_running,
            "rounds": self.rounds,
            "requests_sent": self.requests_sent,
            "timeouts": self.timeouts,
        }

    def _wait_previous(self) -> None:
        previous = self.gate.current
        if self.gate.acquire(self.cycle_timeout):
            return
        self.timeouts += 1
        if previous is not None:
            previous.device.mark_missed()
            logger.debug(f"等待应答超时: {previous.device} {previous.request}")

    def _send(self, device: Device, request: ReadRequest) -> bool:
        # 先记录当前请求再发送，应答到达时一定能找到对应的请求
        cycle = PollCycle(device, request)
        self.gate.begin(cycle)
        if not self.submit(request.frame):
            logger.warning(f"请求帧入队失败: {request}")
            self.gate.complete(cycle)
            return False
        self.requests_sent += 1
        return True

    def _run_once(self) -> None:
        if self.run_once() == 0 and not self.stopping:
            # 没有需要读取的测点，避免空转
            self._stop_event.wait(self.cycle_timeout)

    def _on_stop(self) -> None:
        # 唤醒阻塞在门控上的等待
        self.gate.reset()
