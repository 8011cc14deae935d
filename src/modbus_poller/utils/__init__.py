"""
工具模块
========

包含日志记录和诊断消息记录等工具功能。
"""

from .logger import get_logger, setup_logger, set_level
from .message_log import MessageLog, MessageData, MessageType

__all__ = [
    "get_logger",
    "setup_logger",
    "set_level",
    "MessageLog",
    "MessageData",
    "MessageType",
]
