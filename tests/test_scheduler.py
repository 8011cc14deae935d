"""
轮询调度测试
============
"""

import time
from unittest.mock import Mock

import pytest

from modbus_poller.config.constants import RegisterType
from modbus_poller.config.settings import SerialConfig
from modbus_poller.core.checksum import append_crc
from modbus_poller.polling.correlator import PollCycleGate, ResponseCorrelator
from modbus_poller.polling.device import Device, DeviceState
from modbus_poller.polling.points import MeasurementPoint
from modbus_poller.polling.scheduler import PollingScheduler


@pytest.fixture
def device():
    points = [MeasurementPoint(0), MeasurementPoint(100, RegisterType.INPUT)]
    return Device(1, SerialConfig(port="COM1"), name="电表", points=points, offline_after=2)


class TestPollingScheduler:
    """调度器测试"""

    def test_no_response_still_sends_in_order(self, device):
        """没有应答时每条请求等待超时后照常发送"""
        sent = []
        gate = PollCycleGate()
        scheduler = PollingScheduler(gate, lambda: [device], lambda f: sent.append(f) or True, cycle_timeout=0.05)
        gate.reset()

        start = time.monotonic()
        assert scheduler.run_once() == 2
        elapsed = time.monotonic() - start

        assert sent == [r.frame for r in device.request_plan]
        assert scheduler.timeouts == 1
        assert scheduler.requests_sent == 2
        assert scheduler.rounds == 1
        assert elapsed >= 0.04

    def test_timeout_marks_device_missed(self, device):
        gate = PollCycleGate()
        scheduler = PollingScheduler(gate, lambda: [device], Mock(return_value=True), cycle_timeout=0.01)
        gate.reset()

        scheduler.run_once()
        scheduler.run_once()

        # 第二轮的两次等待都超时，第一轮的一次超时，共3次
        assert scheduler.timeouts == 3
        assert device.state is DeviceState.OFFLINE

    def test_response_releases_next_request(self, device):
        """收到对应应答后立即发送下一条，不等待超时"""
        gate = PollCycleGate()
        correlator = ResponseCorrelator(gate)
        sent = []

        def submit(frame):
            sent.append(frame)
            request = gate.current.request
            payload = b"\x00\x05" * request.count
            correlator.handle_frame(
                append_crc(bytes([request.slave_id, request.function, len(payload)]) + payload)
            )
            return True

        scheduler = PollingScheduler(gate, lambda: [device], submit, cycle_timeout=5.0)
        gate.reset()

        start = time.monotonic()
        assert scheduler.run_once() == 2
        assert time.monotonic() - start < 1.0

        assert scheduler.timeouts == 0
        assert [p.value for p in device.points] == [5, 5]
        assert device.state is DeviceState.ONLINE

    def test_submit_failure_releases_gate(self, device):
        """入队失败不占用门控"""
        gate = PollCycleGate()
        scheduler = PollingScheduler(gate, lambda: [device], Mock(return_value=False), cycle_timeout=5.0)
        gate.reset()

        start = time.monotonic()
        assert scheduler.run_once() == 0
        assert time.monotonic() - start < 1.0
        assert gate.current is None

    def test_disabled_device_skipped(self, device):
        device.enabled = False
        submit = Mock(return_value=True)
        scheduler = PollingScheduler(PollCycleGate(), lambda: [device], submit, cycle_timeout=0.01)

        assert scheduler.run_once() == 0
        submit.assert_not_called()
        assert scheduler.rounds == 1

    def test_plan_change_picked_up_next_round(self, device):
        """测点变化后下一轮使用新的请求帧"""
        sent = []
        gate = PollCycleGate()
        scheduler = PollingScheduler(gate, lambda: [device], lambda f: sent.append(f) or True, cycle_timeout=0.01)
        gate.reset()

        scheduler.run_once()
        device.add_point(MeasurementPoint(200))
        scheduler.run_once()

        assert len(sent) == 5

    def test_start_and_stop(self, device):
        submit = Mock(return_value=True)
        scheduler = PollingScheduler(PollCycleGate(), lambda: [device], submit, cycle_timeout=0.01)

        assert scheduler.start() is True
        time.sleep(0.1)
        assert scheduler.stop() is True

        assert submit.call_count >= 2
        assert not scheduler.is_running
        stats = scheduler.get_statistics()
        assert stats["requests_sent"] == submit.call_count
        assert stats["running"] is False

    def test_stop_wakes_waiting_scheduler(self, device):
        """停止时不必等到超时"""
        scheduler = PollingScheduler(PollCycleGate(), lambda: [device], Mock(return_value=True), cycle_timeout=30.0)
        scheduler.start()
        time.sleep(0.05)

        start = time.monotonic()
        assert scheduler.stop(timeout=5.0) is True
        assert time.monotonic() - start < 2.0

    def test_idle_without_devices(self):
        provider = Mock(return_value=[])
        scheduler = PollingScheduler(PollCycleGate(), provider, Mock(), cycle_timeout=0.05)

        scheduler.start()
        time.sleep(0.12)
        scheduler.stop()

        assert provider.call_count <= 4
