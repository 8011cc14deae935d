"""
TCP连接管理器测试
=================

使用mock替代socket，测试连接、收发和断线处理。
"""

import socket
from unittest.mock import MagicMock, patch

import pytest

from modbus_poller.config.settings import TcpConfig
from modbus_poller.core.tcp_manager import TcpManager


@pytest.fixture
def config():
    return TcpConfig(host="192.168.1.10", port=4001, connect_timeout=1.0)


@pytest.fixture
def mock_socket():
    with patch("modbus_poller.core.tcp_manager.socket.create_connection") as create:
        sock = MagicMock()
        create.return_value = sock
        yield create, sock


class TestTcpManager:
    """TcpManager测试"""

    def test_init(self, config):
        manager = TcpManager(config)
        assert manager.name == "192.168.1.10:4001"
        assert manager.is_open is False

    def test_open_success(self, config, mock_socket):
        create, sock = mock_socket
        manager = TcpManager(config)

        assert manager.open() is True
        assert manager.is_open
        create.assert_called_once_with(("192.168.1.10", 4001), timeout=1.0)
        sock.setsockopt.assert_called_once_with(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

    def test_open_already_open(self, config, mock_socket):
        create, _ = mock_socket
        manager = TcpManager(config)
        manager.open()

        assert manager.open() is True
        create.assert_called_once()

    def test_open_failure(self, config):
        with patch(
            "modbus_poller.core.tcp_manager.socket.create_connection",
            side_effect=ConnectionRefusedError("拒绝连接"),
        ):
            manager = TcpManager(config)
            assert manager.open() is False
            assert manager.is_open is False

    def test_close(self, config, mock_socket):
        _, sock = mock_socket
        manager = TcpManager(config)
        manager.open()
        manager.close()

        sock.shutdown.assert_called_once_with(socket.SHUT_RDWR)
        sock.close.assert_called_once()
        assert manager.is_open is False

    def test_close_when_peer_gone(self, config, mock_socket):
        """对端已断开时shutdown失败也能关闭"""
        _, sock = mock_socket
        sock.shutdown.side_effect = OSError("not connected")
        manager = TcpManager(config)
        manager.open()
        manager.close()

        sock.close.assert_called_once()
        assert manager.is_open is False

    def test_close_not_open(self, config):
        TcpManager(config).close()

    def test_write(self, config, mock_socket):
        _, sock = mock_socket
        manager = TcpManager(config)
        manager.open()

        assert manager.write(b"\x01\x03") is True
        sock.sendall.assert_called_once_with(b"\x01\x03")

    def test_write_not_open(self, config):
        assert TcpManager(config).write(b"\x01") is False

    def test_write_failure(self, config, mock_socket):
        _, sock = mock_socket
        sock.sendall.side_effect = BrokenPipeError("broken pipe")
        manager = TcpManager(config)
        manager.open()

        assert manager.write(b"\x01") is False

    @patch("modbus_poller.core.tcp_manager.select.select")
    def test_read_available(self, mock_select, config, mock_socket):
        _, sock = mock_socket
        mock_select.return_value = ([sock], [], [])
        sock.recv.return_value = b"\x01\x03\x02\x00\x2A"
        manager = TcpManager(config)
        manager.open()

        assert manager.read_available() == b"\x01\x03\x02\x00\x2A"
        mock_select.assert_called_once_with([sock], [], [], 0)

    @patch("modbus_poller.core.tcp_manager.select.select")
    def test_read_nothing_ready(self, mock_select, config, mock_socket):
        _, sock = mock_socket
        mock_select.return_value = ([], [], [])
        manager = TcpManager(config)
        manager.open()

        assert manager.read_available() == b""
        sock.recv.assert_not_called()
        assert manager.is_open

    @patch("modbus_poller.core.tcp_manager.select.select")
    def test_peer_closed(self, mock_select, config, mock_socket):
        """对端关闭连接后本地连接也关闭"""
        _, sock = mock_socket
        mock_select.return_value = ([sock], [], [])
        sock.recv.return_value = b""
        manager = TcpManager(config)
        manager.open()

        assert manager.read_available() == b""
        assert manager.is_open is False

    @patch("modbus_poller.core.tcp_manager.select.select")
    def test_recv_error_closes(self, mock_select, config, mock_socket):
        _, sock = mock_socket
        mock_select.return_value = ([sock], [], [])
        sock.recv.side_effect = ConnectionResetError("reset")
        manager = TcpManager(config)
        manager.open()

        assert manager.read_available() == b""
        assert manager.is_open is False

    def test_read_not_open(self, config):
        assert TcpManager(config).read_available() == b""

    @patch("modbus_poller.core.tcp_manager.select.select")
    def test_discard_input(self, mock_select, config, mock_socket):
        _, sock = mock_socket
        mock_select.side_effect = [([sock], [], []), ([], [], [])]
        sock.recv.return_value = b"\xFF"
        manager = TcpManager(config)
        manager.open()

        manager.discard_input()

        sock.recv.assert_called_once()

    def test_context_manager(self, config, mock_socket):
        _, sock = mock_socket
        with TcpManager(config) as manager:
            assert manager.is_open
        sock.close.assert_called_once()
