"""
时间工具函数
"""

from typing import List, Optional
import logging

import numpy as np

logger = logging.getLogger(__name__)

# 修正差值时最多向两侧各移动的浮点步数
_MAX_DELTA_ADJUST_STEPS = 4


def _exact_delta(previous: float, time: float) -> float:
    """
    求一个差值使得 previous + delta 严格等于 time

    直接相减的结果在累加时可能差一个末位，这里沿浮点数轴向两侧微调。
    """
    delta = time - previous
    if previous + delta == time:
        return delta
    for direction in (np.inf, -np.inf):
        candidate = delta
        for _ in range(_MAX_DELTA_ADJUST_STEPS):
            candidate = float(np.nextafter(candidate, direction))
            if previous + candidate == time:
                return candidate
    logger.warning(f"时间戳 {time} 无法相对 {previous} 精确差分，恢复后会有舍入误差")
    return delta


def compute_time_deltas(times: List[Optional[float]]) -> List[Optional[float]]:
    """
    把绝对时间戳转换为相对前一个时间戳的差值，第一个差值相对 0

    差值保证 reconstruct_times 能逐位恢复原始时间戳。None 原样保留，
    不参与差分。

    Args:
        times: 绝对时间戳列表

    Returns:
        List[Optional[float]]: 差值列表
    """
    deltas = []
    previous = 0
    for time in times:
        if time is None:
            deltas.append(None)
            continue
        delta = _exact_delta(previous, time)
        deltas.append(delta)
        previous = previous + delta
    return deltas


def reconstruct_times(deltas: List[Optional[float]]) -> List[Optional[float]]:
    """从差值列表恢复绝对时间戳，None 原样保留"""
    times = []
    current = 0
    for delta in deltas:
        if delta is None:
            times.append(None)
            continue
        current = current + delta
        times.append(current)
    return times


def shift_times(times: List[Optional[float]], delta: float) -> List[Optional[float]]:
    """把所有非空时间戳平移 delta"""
    if not delta:
        return list(times)
    return [time + delta if time is not None else None for time in times]
