#!/usr/bin/env python3
"""
Modbus主站轮询工具 - 模块CLI入口
================================

支持通过 python -m modbus_poller 调用
"""

import sys
import time
import argparse
import logging
from typing import List, Optional

import serial

from .config.constants import RegisterType, DEFAULT_BAUDRATE, DEFAULT_TCP_PORT
from .config.settings import PollConfig, SerialConfig, TcpConfig
from .core.serial_manager import SerialManager
from .polling.device import Device
from .polling.master import ModbusMaster
from .polling.points import ByteOrder, MeasurementPoint, ValueType
from .utils.logger import get_logger, set_level
from .utils.message_log import MessageType

logger = get_logger(__name__)

# 版本信息
VERSION = "1.0.0"
PROGRAM_NAME = "Modbus主站轮询工具"

_PARITY = {
    "N": serial.PARITY_NONE,
    "E": serial.PARITY_EVEN,
    "O": serial.PARITY_ODD,
}


def parse_point(text: str) -> MeasurementPoint:
    """
    解析测点参数

    格式: 地址[:存储区[:类型[:名称]]]，如 100、100:input、100:holding:float:温度

    Raises:
        ValueError: 格式错误时抛出
    """
    parts = text.split(":", 3)
    try:
        address = int(parts[0], 0)
    except ValueError:
        raise ValueError(f"测点地址无效: {text!r}") from None

    try:
        register_type = RegisterType(parts[1].lower()) if len(parts) > 1 and parts[1] else RegisterType.HOLDING
        value_type = ValueType(parts[2].lower()) if len(parts) > 2 and parts[2] else ValueType.UINT16
    except ValueError:
        raise ValueError(f"测点存储区或类型无效: {text!r}") from None

    name = parts[3] if len(parts) > 3 else ""
    return MeasurementPoint(address, register_type, value_type, name=name)


def create_parser():
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog="modbus_poller",
        description=f"{PROGRAM_NAME} v{VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例：
  # 串口轮询从站1的保持寄存器100(uint16)和101~102(float)
  python -m modbus_poller rtu --port COM1 --baudrate 9600 --slave 1 --point 100 --point 101:holding:float:温度

  # TCP轮询输入寄存器
  python -m modbus_poller tcp --host 192.168.1.10 --slave 1 --point 0:input:int32

  # 列出可用串口
  python -m modbus_poller ports
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROGRAM_NAME} v{VERSION}"
    )
    parser.add_argument("--debug", action="store_true", help="输出调试日志（含收发帧）")

    subparsers = parser.add_subparsers(dest="command", help="可用命令")

    def add_poll_arguments(sub):
        sub.add_argument("--slave", type=int, default=1, help="从站地址（默认1）")
        sub.add_argument(
            "--point", action="append", default=[], metavar="ADDR[:BANK[:TYPE[:NAME]]]",
            help="测点，可重复指定；BANK为holding/input，TYPE为uint16/int16/uint32/int32/uint64/int64/float/double/hex",
        )
        sub.add_argument(
            "--byte-order", default="ABCD", choices=[b.value for b in ByteOrder], help="多字节数据字节序（默认ABCD）"
        )
        sub.add_argument("--timeout", type=float, default=1.0, help="等待应答的最长时间，秒（默认1.0）")
        sub.add_argument("--interval", type=float, default=1.0, help="打印测点值的间隔，秒（默认1.0）")
        sub.add_argument("--duration", type=float, default=0.0, help="运行时长，秒（默认0表示直到Ctrl+C）")

    rtu_parser = subparsers.add_parser("rtu", help="通过串口轮询")
    rtu_parser.add_argument("--port", required=True, help="串口号（如 COM1, /dev/ttyUSB0）")
    rtu_parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE, help=f"波特率（默认{DEFAULT_BAUDRATE}）")
    rtu_parser.add_argument("--parity", default="N", choices=sorted(_PARITY), help="校验位（默认N）")
    rtu_parser.add_argument("--frame-timeout", type=int, default=20, help="帧间静默时间，毫秒（默认20）")
    add_poll_arguments(rtu_parser)

    tcp_parser = subparsers.add_parser("tcp", help="通过TCP轮询（RTU over TCP）")
    tcp_parser.add_argument("--host", required=True, help="服务器IP")
    tcp_parser.add_argument("--tcp-port", type=int, default=DEFAULT_TCP_PORT, help=f"服务器端口（默认{DEFAULT_TCP_PORT}）")
    add_poll_arguments(tcp_parser)

    subparsers.add_parser("ports", help="列出可用串口")

    return parser


def build_master(args) -> ModbusMaster:
    """根据命令行参数创建主站和设备"""
    if args.command == "rtu":
        transport = SerialConfig(
            port=args.port,
            baudrate=args.baudrate,
            parity=_PARITY[args.parity],
            frame_timeout=args.frame_timeout,
        )
    else:
        transport = TcpConfig(host=args.host, port=args.tcp_port)

    points = [parse_point(text) for text in args.point]
    if not points:
        raise ValueError("至少需要指定一个测点（--point）")

    master = ModbusMaster(PollConfig(cycle_timeout=args.timeout))
    master.add_device(Device(args.slave, transport, name=f"从站{args.slave}", points=points,
                             byte_order=ByteOrder(args.byte_order)))
    return master


def print_snapshot(master: ModbusMaster) -> None:
    """打印所有测点的当前值"""
    for item in master.snapshot():
        updated = time.strftime("%H:%M:%S", time.localtime(item.update_time)) if item.update_time else "--"
        print(f"  {item.device} {item.name:<16} {item.register_type}[{item.register_address}] "
              f"{item.value_type:<6} = {item.value}  ({updated}, {item.device_state.value})")


def run_poll(args) -> bool:
    """执行轮询直到超时或用户中断"""
    master = build_master(args)
    if not master.start():
        print("❌ 启动轮询失败，请检查通道配置")
        master.stop()
        return False

    deadline = time.monotonic() + args.duration if args.duration > 0 else None
    try:
        while master.status and any(p.is_active for p in master.pollers.values()):
            time.sleep(args.interval)
            print_snapshot(master)
            if deadline is not None and time.monotonic() >= deadline:
                break
    finally:
        master.stop()

    errors = [m for m in master.messages.snapshot() if m.type is MessageType.ERROR]
    return not errors


def list_ports() -> bool:
    ports = SerialManager.list_available_ports()
    if not ports:
        print("没有找到可用的串口。")
        return False
    print("可用的串口：")
    for port in ports:
        print(f"  {port['device']} - {port['description']}")
    return True


def main(argv: Optional[List[str]] = None):
    """主函数"""
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if args.debug:
            set_level(logging.DEBUG)

        if not args.command:
            parser.print_help()
            return

        if args.command == "ports":
            success = list_ports()
        else:
            success = run_poll(args)

        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print("\n\n👋 用户中断程序，退出")
        sys.exit(1)
    except ValueError as e:
        print(f"\n❌ 参数错误: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"程序异常: {e}")
        print(f"\n💥 程序异常: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
