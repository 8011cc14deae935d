"""
日志模块
========

包内所有模块通过 get_logger(__name__) 取得 modbus_poller 下的子日志器，
输出统一交给包日志器处理。控制台输出按级别着色，并附带线程名和调用位置，
便于区分同一通道上的收发、发布和调度线程。
"""

import datetime
import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "modbus_poller"

_RESET = '\033[0m'

# 级别 -> ANSI颜色
LEVEL_COLORS = {
    logging.DEBUG: '\033[36m',
    logging.INFO: _RESET,
    logging.WARNING: '\033[33m',
    logging.ERROR: '\033[31m',
    logging.CRITICAL: '\033[35m',
}

FILE_FORMAT = '%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s'


def _format_time(created: float) -> str:
    moment = datetime.datetime.fromtimestamp(created)
    return f"{moment:%Y-%m-%d %H:%M:%S}.{moment.microsecond // 1000:03d}"


class ColoredFormatter(logging.Formatter):
    """控制台格式化器：按级别着色，末尾标出产生日志的文件、函数和行号"""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, _RESET)
        location = f"{Path(record.pathname).name}.{record.funcName}():{record.lineno}"
        text = (
            f"[{_format_time(record.created)}] [{record.levelname:<7}] "
            f"[{record.threadName}] {record.getMessage()} [{location}]"
        )
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return f"{color}{text}{_RESET}"


# 通过 setup_logger 配置过输出的日志器
_configured = {}


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console_output: bool = True
) -> logging.Logger:
    """
    为日志器重新配置输出

    Args:
        name: 日志器名称
        level: 日志级别
        log_file: 额外写入的日志文件，None表示只输出到控制台
        console_output: 是否输出到标准输出

    Returns:
        配置完成的日志器
    """
    target = logging.getLogger(name)
    target.setLevel(level)

    for handler in list(target.handlers):
        target.removeHandler(handler)

    handlers = []
    if console_output:
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(ColoredFormatter())
        handlers.append(stream)
    if log_file:
        file_out = logging.FileHandler(log_file, encoding='utf-8')
        file_out.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_out)

    for handler in handlers:
        target.addHandler(handler)

    # 不再向根日志器传递，避免重复输出
    target.propagate = False
    _configured[name] = target
    return target


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    取得日志器

    modbus_poller 及其子模块的日志器直接返回，由包日志器统一输出；
    其他名称首次获取时单独配置一次控制台输出。
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    if name not in _configured:
        setup_logger(name)
    return _configured[name]


def set_level(level: int) -> None:
    """调整包日志器的级别，对所有子模块生效"""
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(level)


setup_logger()
