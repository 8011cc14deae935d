"""
串口通道
========

RTU 主站使用的串口封装。收发线程每个空闲节拍调用一次 read_available，
取走驱动缓存里已有的全部字节交给分帧器，因此这里的读操作从不阻塞。
所有操作失败时只记录日志并返回失败结果，由上层决定是否停止轮询。
"""

from typing import Dict, List, Optional

import serial
from serial.tools import list_ports

from ..config.settings import SerialConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SerialManager:
    """单个串口的打开、关闭和非阻塞收发"""

    def __init__(self, config: SerialConfig):
        self.config = config
        self._port: Optional[serial.Serial] = None

    @property
    def name(self) -> str:
        """通道名，即串口号"""
        return self.config.port

    @property
    def port(self) -> Optional[serial.Serial]:
        return self._port

    @property
    def is_open(self) -> bool:
        return bool(self._port is not None and self._port.is_open)

    def _describe(self) -> str:
        cfg = self.config
        return f"{cfg.port} {cfg.baudrate},{cfg.bytesize}{cfg.parity}{cfg.stopbits}"

    def open(self) -> bool:
        """
        按配置打开串口

        已经打开时直接返回True。

        Returns:
            串口可用返回True，设备不存在或被占用返回False
        """
        if self.is_open:
            logger.debug(f"串口 {self.name} 已处于打开状态")
            return True

        try:
            self._port = serial.Serial(**self.config.to_serial_kwargs())
        except (serial.SerialException, ValueError, OSError) as e:
            self._port = None
            logger.error(f"串口 {self.name} 打开失败，设备不存在或已被占用: {e}")
            return False

        logger.info(f"串口已打开: {self._describe()}")
        return True

    def close(self) -> None:
        port, self._port = self._port, None
        if port is None or not port.is_open:
            return
        try:
            port.close()
        except (serial.SerialException, OSError) as e:
            logger.error(f"串口 {self.name} 关闭异常: {e}")
            return
        logger.info(f"串口 {self.name} 已关闭")

    def write(self, data: bytes) -> bool:
        """
        发送一帧数据

        Args:
            data: 完整的请求帧，含CRC

        Returns:
            全部字节写出返回True
        """
        if not self.is_open:
            logger.error(f"串口 {self.name} 未打开，丢弃 {len(data)} 字节")
            return False
        try:
            written = self._port.write(data)
        except (serial.SerialException, OSError) as e:
            logger.error(f"串口 {self.name} 写入异常: {e}")
            return False
        return written == len(data)

    def read_available(self) -> bytes:
        """
        取走接收缓存中已到达的全部字节，没有数据时返回空bytes

        读取出错时(如USB转串口被拔出)关闭串口，之后 is_open 为False。
        """
        if not self.is_open:
            return b''
        try:
            pending = self._port.in_waiting
            return self._port.read(pending) if pending > 0 else b''
        except (serial.SerialException, OSError) as e:
            logger.error(f"串口 {self.name} 读取异常: {e}")
            self.close()
            return b''

    def discard_input(self) -> None:
        """清掉接收缓存中残留的字节"""
        if not self.is_open:
            return
        try:
            self._port.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            logger.warning(f"串口 {self.name} 清空接收缓存失败: {e}")

    @staticmethod
    def list_available_ports() -> List[Dict[str, str]]:
        """
        枚举本机串口

        Returns:
            每个串口一项，含 device、description、hwid 三个字段；枚举失败时为空列表
        """
        try:
            found = list_ports.comports()
        except OSError as e:
            logger.error(f"枚举串口失败: {e}")
            return []
        return [
            {
                'device': info.device,
                'description': info.description or '未知设备',
                'hwid': info.hwid or '未知硬件ID',
            }
            for info in found
        ]

    def __enter__(self):
        if not self.open():
            raise RuntimeError(f"无法打开串口 {self.name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
