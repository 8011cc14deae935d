"""
应答处理模块
============

把接收到的帧与当前未完成的请求对应起来，校验一致后把寄存器数据解码写入测点。

任何一步校验失败都直接丢弃该帧，不重试：下一轮轮询会重新读取这些数据。
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config.constants import RegisterType
from ..core.frame_handler import FrameHandler, ReadRequest, to_hex_text
from ..core.io_thread import IoFrame
from ..core.worker import BackgroundWorker
from ..utils.logger import get_logger
from .device import Device
from .points import decode_value

logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class PollCycle:
    """一次未完成的请求：请求帧及其所属设备"""

    device: Device
    request: ReadRequest
    sent_at: float = field(default_factory=time.time)


class PollCycleGate:
    """
    每个通道同一时刻只允许一条请求等待应答

    ready 为自动复位标志：acquire() 等到它被置位后立即清除。
    当前请求与 ready 标志由同一个条件变量保护。
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._cycle: Optional[PollCycle] = None
        self._ready = True

    def acquire(self, timeout: float) -> bool:
        """
        等待上一条请求完成

        Args:
            timeout: 最长等待时间(秒)

        Returns:
            上一条请求已完成返回True，超时返回False
        """
        with self._cond:
            completed = self._cond.wait_for(lambda: self._ready, timeout)
            self._ready = False
            return completed

    def begin(self, cycle: PollCycle) -> None:
        """
        记录新发送的请求

        同时清除 ready：上一条请求超时后才到达的应答可能已经置位，
        新请求未完成前不能放行下一条。
        """
        with self._cond:
            self._cycle = cycle
            self._ready = False

    @property
    def current(self) -> Optional[PollCycle]:
        with self._cond:
            return self._cycle

    def complete(self, cycle: PollCycle) -> bool:
        """
        完成指定请求，允许发送下一条

        Returns:
            指定请求仍是当前请求时返回True；已被新请求取代时返回False
        """
        with self._cond:
            if self._cycle is not cycle:
                return False
            self._cycle = None
            self._ready = True
            self._cond.notify_all()
            return True

    def reset(self) -> None:
        """清除当前请求并置位，用于开始轮询或停止时唤醒等待"""
        with self._cond:
            self._cycle = None
            self._ready = True
            self._cond.notify_all()


class ResponseCorrelator:
    """应答帧校验与数据解码"""

    def __init__(self, gate: PollCycleGate):
        self.gate = gate
        self.frames_accepted = 0
        self.frames_rejected = 0

    def handle_frame(self, frame: bytes) -> bool:
        """
        处理一帧应答

        Args:
            frame: 接收到的完整数据帧

        Returns:
            与当前请求对应并已解码返回True，被丢弃返回False
        """
        cycle = self.gate.current
        if not frame:
            return self._reject("空帧", frame)
        if cycle is None:
            return self._reject("没有等待应答的请求", frame)

        response = FrameHandler.unpack_response(frame)
        if response is None:
            return self._reject("帧格式或校验错误", frame)

        request = cycle.request
        # 从站地址、功能码、读取数量与应答数量任一不符则丢弃
        if (
            request.slave_id != response.slave_id
            or request.function != response.function
            or request.count != response.byte_count / 2
        ):
            return self._reject("与当前请求不对应", frame)

        self._decode(cycle, response.payload)
        self.frames_accepted += 1
        self.gate.complete(cycle)
        return True

    def _decode(self, cycle: PollCycle, payload: bytes) -> int:
        """把寄存器数据写入请求地址范围内的测点，返回更新的测点数"""
        request = cycle.request
        device = cycle.device
        register_type = RegisterType.from_function_code(request.function)
        now = time.time()
        updated = 0

        for point in device.points:
            if point.register_type is not register_type:
                continue
            # 测点完整落在本次读取的地址范围内才赋值
            if not (request.start_address <= point.register_address
                    and point.last_word_address <= request.end_address):
                continue
            offset = (point.register_address - request.start_address) * 2
            try:
                point.update(decode_value(point.value_type, payload, offset, device.byte_order), now)
                updated += 1
            except (ValueError, TypeError) as e:
                logger.error(f"测点 {point.name} 解码失败: {e}")

        device.mark_response(now)
        logger.debug(f"{device} [{request.start_address},{request.end_address}] 更新测点 {updated} 个")
        return updated

    def _reject(self, reason: str, frame: bytes) -> bool:
        self.frames_rejected += 1
        logger.debug(f"丢弃应答({reason}): {to_hex_text(frame)}")
        return False


class ResponseThread(BackgroundWorker):
    """应答处理线程：从接收帧队列取帧交给 ResponseCorrelator"""

    worker_name = "response"

    def __init__(
        self,
        correlator: ResponseCorrelator,
        get_frame: Callable[[Optional[float]], Optional[IoFrame]],
        wait_timeout: float = 0.1,
    ):
        super().__init__()
        self.correlator = correlator
        self.get_frame = get_frame
        self.wait_timeout = wait_timeout

    def _run_once(self) -> None:
        frame = self.get_frame(self.wait_timeout)
        if frame is None:
            return
        self.correlator.handle_frame(frame.data)
