"""
诊断消息记录测试
================
"""

import threading

import pytest

from modbus_poller.utils.message_log import MessageData, MessageLog, MessageType


class TestMessageData:
    """消息文本格式测试"""

    def test_send_prefix(self):
        message = MessageData("01 03", MessageType.SEND, "COM1", timestamp=0.0)
        text = str(message)

        assert text.endswith("COM1 发送:01 03")
        assert text.startswith("[")

    def test_info_without_source(self):
        message = MessageData("开始轮询", timestamp=0.0)
        assert str(message).endswith("] 开始轮询")


class TestMessageLog:
    """有上限的消息列表测试"""

    def test_add_and_snapshot(self):
        log = MessageLog()
        log.add("a", MessageType.RECEIVE, "COM1")

        snapshot = log.snapshot()
        assert len(snapshot) == 1
        assert snapshot[0].content == "a"
        assert snapshot[0].type is MessageType.RECEIVE

    def test_oldest_dropped(self):
        log = MessageLog(limit=3)
        for i in range(5):
            log.add(str(i))

        assert [m.content for m in log.snapshot()] == ["2", "3", "4"]
        assert len(log) == 3

    def test_snapshot_is_copy(self):
        log = MessageLog()
        snapshot = log.snapshot()
        log.add("x")
        assert snapshot == []

    def test_clear(self):
        log = MessageLog()
        log.add("x")
        log.clear()
        assert len(log) == 0

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            MessageLog(limit=0)

    def test_concurrent_add(self):
        log = MessageLog(limit=1000)

        def worker():
            for i in range(100):
                log.add(str(i))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(log) == 400
