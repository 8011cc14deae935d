"""
TCP连接管理模块
===============

以与串口管理器相同的接口封装TCP客户端连接。
TCP上传输的仍是带CRC的RTU帧，因此接收端复用同一个分帧逻辑。
"""

import select
import socket
import threading
from typing import Optional

from ..config.settings import TcpConfig
from ..utils.logger import get_logger

logger = get_logger(__name__)

RECV_CHUNK_SIZE = 4096


class TcpManager:
    """TCP连接管理器"""

    def __init__(self, config: TcpConfig):
        """
        初始化TCP连接管理器

        Args:
            config: TCP配置对象
        """
        self.config = config
        self._sock: Optional[socket.socket] = None
        # 发送在发送线程，接收在接收线程，关闭可能来自任一线程
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self.config.transport_key

    @property
    def is_open(self) -> bool:
        """检查连接是否已建立"""
        return self._sock is not None

    def open(self) -> bool:
        """
        建立TCP连接

        Returns:
            成功返回True，失败返回False
        """
        if self.is_open:
            logger.warning(f"连接 {self.name} 已经建立")
            return True

        try:
            logger.info(f"连接中... {self.name}")
            sock = socket.create_connection(
                (self.config.host, self.config.port), timeout=self.config.connect_timeout
            )
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(self.config.connect_timeout)
            with self._lock:
                self._sock = sock
            logger.info(f"连接服务器成功... {self.name}")
            return True

        except OSError as e:
            logger.error(f"连接失败... {self.name}: {e}")
            return False

    def close(self) -> None:
        """断开TCP连接"""
        with self._lock:
            sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # 对端可能已经断开
        try:
            sock.close()
            logger.info(f"断开连接... {self.name}")
        except OSError as e:
            logger.error(f"关闭连接失败: {e}")

    def write(self, data: bytes) -> bool:
        """
        发送数据

        Returns:
            成功返回True，失败返回False
        """
        sock = self._sock
        if sock is None:
            logger.error("连接未建立，无法发送数据")
            return False
        try:
            sock.sendall(data)
            return True
        except OSError as e:
            logger.error(f"发送数据失败: {e}")
            return False

    def read_available(self) -> bytes:
        """
        读取当前已到达的数据，不阻塞

        对端关闭连接时会关闭本地连接，之后 is_open 为False。

        Returns:
            读取到的数据，无数据时返回空bytes
        """
        sock = self._sock
        if sock is None:
            return b''
        try:
            readable, _, _ = select.select([sock], [], [], 0)
            if not readable:
                return b''
            data = sock.recv(RECV_CHUNK_SIZE)
        except (OSError, ValueError) as e:
            logger.error(f"接收数据失败: {e}")
            self.close()
            return b''

        if not data:
            logger.warning(f"服务器 {self.name} 已关闭连接")
            self.close()
        return data

    def discard_input(self) -> None:
        """丢弃已到达但未读取的数据"""
        while self.read_available():
            pass

    def __enter__(self):
        """支持with语句"""
        if not self.open():
            raise RuntimeError(f"无法连接 {self.name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.close()
