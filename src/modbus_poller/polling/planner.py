"""
地址区间规划
============

根据设备的测点生成读取所有测点所需的最少请求帧。

1. 按存储区分组，按起始地址排序；
2. 一次遍历求并集，得到相邻或连续的闭区间 [X, Y]；
3. 跨度不超过上限的区间一帧读完，超过的拆成每帧62字、相邻两帧重叠4字，
   保证跨在拆分边界上的测点至少在其中一帧中是完整的。
"""

from typing import Iterable, List, Tuple

from ..config.constants import (
    RegisterType,
    DEFAULT_MAX_READ_SPAN,
    SPLIT_CHUNK_WORDS,
    SPLIT_STEP_WORDS,
)
from ..core.frame_handler import FrameHandler, ReadRequest
from .points import MeasurementPoint

# 闭区间 (起始字地址, 结束字地址)
Interval = Tuple[int, int]


def merge_intervals(points: Iterable[MeasurementPoint]) -> List[Interval]:
    """
    对测点的地址区间求并集

    起始地址不超过上一区间末地址+1的测点并入上一区间。

    Examples:
        >>> merge_intervals([MeasurementPoint(0), MeasurementPoint(1), MeasurementPoint(5)])
        [(0, 1), (5, 5)]
    """
    intervals: List[Interval] = []
    for point in sorted(points, key=lambda p: p.register_address):
        if not intervals or intervals[-1][1] + 1 < point.register_address:
            intervals.append((point.register_address, point.last_word_address))
        elif intervals[-1][1] < point.last_word_address:
            intervals[-1] = (intervals[-1][0], point.last_word_address)
    return intervals


def split_interval(start: int, end: int, span_limit: int = DEFAULT_MAX_READ_SPAN) -> List[Interval]:
    """
    拆分超出单帧读取上限的区间

    Args:
        start: 区间起始地址
        end: 区间结束地址（含）
        span_limit: end - start 小于该值时不拆分

    Returns:
        子区间列表，相邻子区间重叠 SPLIT_CHUNK_WORDS - SPLIT_STEP_WORDS 个字
    """
    if end - start < span_limit:
        return [(start, end)]

    chunks: List[Interval] = []
    cursor = start
    while end - cursor >= span_limit:
        chunks.append((cursor, cursor + SPLIT_CHUNK_WORDS - 1))
        cursor += SPLIT_STEP_WORDS
    chunks.append((cursor, end))
    return chunks


def plan_requests(
    slave_id: int,
    points: Iterable[MeasurementPoint],
    span_limit: int = DEFAULT_MAX_READ_SPAN,
) -> Tuple[ReadRequest, ...]:
    """
    生成设备的请求帧列表

    先保持寄存器(0x03)后输入寄存器(0x04)，顺序即轮询顺序。

    Args:
        slave_id: 从站地址
        points: 设备的测点
        span_limit: 单帧读取的地址跨度上限

    Returns:
        请求帧元组
    """
    points = list(points)
    requests: List[ReadRequest] = []
    for register_type in (RegisterType.HOLDING, RegisterType.INPUT):
        bank = [p for p in points if p.register_type is register_type]
        for start, end in merge_intervals(bank):
            for sub_start, sub_end in split_interval(start, end, span_limit):
                requests.append(
                    FrameHandler.pack_read_request(
                        slave_id, register_type.function_code, sub_start, sub_end - sub_start + 1
                    )
                )
    return tuple(requests)
