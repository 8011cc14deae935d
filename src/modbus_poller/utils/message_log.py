"""
诊断消息记录
============

保存最近的收发帧和错误信息，供展示层显示通讯过程。
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List

from ..config.constants import DEFAULT_MESSAGE_LIMIT


class MessageType(str, Enum):
    """消息类型"""

    INFO = "info"
    ERROR = "error"
    SEND = "send"
    RECEIVE = "receive"


@dataclass(frozen=True)
class MessageData:
    """一条诊断消息"""

    content: str
    type: MessageType = MessageType.INFO
    source: str = ""  # 产生消息的通道
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        ts = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        prefix = {MessageType.SEND: "发送", MessageType.RECEIVE: "接收"}.get(self.type, "")
        text = f"{prefix}:{self.content}" if prefix else self.content
        parts = [f"[{ts}]", self.source, text]
        return " ".join(p for p in parts if p)


class MessageLog:
    """有上限的消息列表，超出上限时丢弃最早的消息"""

    def __init__(self, limit: int = DEFAULT_MESSAGE_LIMIT):
        if limit <= 0:
            raise ValueError("limit必须大于0")
        self._messages: Deque[MessageData] = deque(maxlen=limit)
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._messages.maxlen or 0

    def add(self, content: str, type: MessageType = MessageType.INFO, source: str = "") -> MessageData:
        message = MessageData(content, type, source)
        with self._lock:
            self._messages.append(message)
        return message

    def snapshot(self) -> List[MessageData]:
        """获取当前消息的副本"""
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
