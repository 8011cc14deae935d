"""
IO线程测试
==========

测试按帧间静默分帧的FrameAssembler以及驱动它的IO线程。
"""

import time
from unittest.mock import Mock

import pytest

from modbus_poller.core.io_thread import FrameAssembler, IoFrame, IoThread
from modbus_poller.core.serial_manager import SerialManager


class TestFrameAssembler:
    """分帧状态机测试"""

    def test_burst_within_timeout_is_one_frame(self):
        """两段数据间隔小于静默时间，合成一帧"""
        assembler = FrameAssembler(idle_ticks=5, max_length=256)

        assert assembler.feed(b"\x01\x03\x04") is None
        for _ in range(4):
            assert assembler.tick() is None
        assert assembler.feed(b"\x00\x2A\x00\x01") is None
        for _ in range(4):
            assert assembler.tick() is None

        assert assembler.tick() == b"\x01\x03\x04\x00\x2A\x00\x01"
        assert assembler.pending == 0

    def test_gap_exceeding_timeout_is_two_frames(self):
        """间隔超过静默时间，分成两帧"""
        assembler = FrameAssembler(idle_ticks=3, max_length=256)
        frames = []

        assembler.feed(b"\x01\x02")
        for _ in range(3):
            frame = assembler.tick()
            if frame is not None:
                frames.append(frame)
        assembler.feed(b"\x03\x04")
        for _ in range(3):
            frame = assembler.tick()
            if frame is not None:
                frames.append(frame)

        assert frames == [b"\x01\x02", b"\x03\x04"]

    def test_flush_on_max_length(self):
        """缓存达到最大帧长立即成帧"""
        assembler = FrameAssembler(idle_ticks=100, max_length=8)

        assert assembler.feed(bytes(5)) is None
        frame = assembler.feed(bytes(3))

        assert frame == bytes(8)
        assert assembler.pending == 0

    def test_tick_without_data(self):
        """没有数据时静默计数不产生空帧"""
        assembler = FrameAssembler(idle_ticks=1, max_length=256)
        for _ in range(10):
            assert assembler.tick() is None

    def test_feed_empty_resets_nothing(self):
        assembler = FrameAssembler(idle_ticks=2, max_length=256)
        assembler.feed(b"\x01")
        assembler.tick()
        assert assembler.feed(b"") is None
        assert assembler.tick() == b"\x01"

    def test_explicit_flush(self):
        assembler = FrameAssembler(idle_ticks=2, max_length=256)
        assert assembler.flush() == b""
        assembler.feed(b"\xAA")
        assert assembler.flush() == b"\xAA"

    @pytest.mark.parametrize("idle_ticks, max_length", [(0, 256), (5, 0)])
    def test_invalid_arguments(self, idle_ticks, max_length):
        with pytest.raises(ValueError):
            FrameAssembler(idle_ticks, max_length)


class TestIoFrame:
    """IoFrame数据类测试"""

    def test_auto_timestamp(self):
        before = time.time()
        frame = IoFrame(b"\x01\x03")
        assert before <= frame.timestamp <= time.time()

    def test_text(self):
        assert IoFrame(b"\x01\xab", timestamp=1.0).text == "01 AB"


class TestIoThread:
    """IO线程测试"""

    @pytest.fixture
    def mock_manager(self):
        manager = Mock(spec=SerialManager)
        manager.is_open = True
        manager.name = "COM1"
        manager.read_available.return_value = b""
        return manager

    def test_poll_assembles_frames(self, mock_manager):
        """逐周期读取，静默后把帧放入队列并回调"""
        received = []
        io_thread = IoThread(mock_manager, idle_ticks=2, max_length=256, on_frame=received.append)
        mock_manager.read_available.side_effect = [b"\x01\x03", b"\x02", b"", b""]

        results = [io_thread.poll() for _ in range(4)]

        assert results[:3] == [None, None, None]
        assert results[3].data == b"\x01\x03\x02"
        assert [f.data for f in received] == [b"\x01\x03\x02"]
        assert io_thread.get_frame(timeout=0).data == b"\x01\x03\x02"
        assert io_thread.frames_received == 1

    def test_get_frame_timeout(self, mock_manager):
        io_thread = IoThread(mock_manager, idle_ticks=2, max_length=256)
        assert io_thread.get_frame(timeout=0.01) is None

    def test_queue_full_drops_oldest(self, mock_manager):
        io_thread = IoThread(mock_manager, idle_ticks=1, max_length=256, frame_queue_size=2)
        mock_manager.read_available.side_effect = [b"\x01", b"", b"\x02", b"", b"\x03", b""]

        for _ in range(6):
            io_thread.poll()

        assert io_thread.frames_dropped == 1
        assert io_thread.get_frame(timeout=0).data == b"\x02"
        assert io_thread.get_frame(timeout=0).data == b"\x03"

    def test_closed_transport_reported_once(self, mock_manager):
        on_closed = Mock()
        io_thread = IoThread(mock_manager, idle_ticks=2, max_length=256, on_closed=on_closed)
        mock_manager.is_open = False

        assert io_thread.poll() is None
        assert io_thread.poll() is None

        on_closed.assert_called_once()
        mock_manager.read_available.assert_not_called()

    def test_callback_error_does_not_break_poll(self, mock_manager):
        io_thread = IoThread(
            mock_manager, idle_ticks=1, max_length=256, on_frame=Mock(side_effect=RuntimeError("boom"))
        )
        mock_manager.read_available.side_effect = [b"\x01", b""]

        io_thread.poll()
        frame = io_thread.poll()

        assert frame is not None
        assert io_thread.queue_size == 1

    def test_clear(self, mock_manager):
        """清除缓存中的半帧和队列中的帧"""
        io_thread = IoThread(mock_manager, idle_ticks=1, max_length=256)
        mock_manager.read_available.side_effect = [b"\x01", b"", b"\x02"]
        for _ in range(3):
            io_thread.poll()
        assert io_thread.queue_size == 1
        assert io_thread.assembler.pending == 1

        io_thread.clear()

        assert io_thread.queue_size == 0
        assert io_thread.assembler.pending == 0

    def test_start_requires_open_transport(self, mock_manager):
        mock_manager.is_open = False
        io_thread = IoThread(mock_manager, idle_ticks=2, max_length=256)
        assert io_thread.start() is False
        assert not io_thread.is_running

    def test_start_and_stop(self, mock_manager):
        """后台线程运行时按周期读取数据并分帧"""
        chunks = [b"\x01\x03", b"\x00"]

        def read_available():
            return chunks.pop(0) if chunks else b""

        mock_manager.read_available.side_effect = read_available
        io_thread = IoThread(mock_manager, idle_ticks=3, max_length=256, tick=0.001)

        assert io_thread.start() is True
        try:
            frame = io_thread.get_frame(timeout=2.0)
        finally:
            assert io_thread.stop() is True

        assert frame is not None
        assert frame.data == b"\x01\x03\x00"
        assert not io_thread.is_running

    def test_statistics(self, mock_manager):
        io_thread = IoThread(mock_manager, idle_ticks=2, max_length=256)
        stats = io_thread.get_statistics()
        assert stats["running"] is False
        assert stats["frames_received"] == 0
        assert stats["pending_bytes"] == 0
