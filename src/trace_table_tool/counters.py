# -*- coding: utf-8 -*-
"""
计数器归一化

relative 计数器的每个采样是相对前一个采样的增量，这里把它累加成绝对值。
第一个采样没有前驱，视为 0 基线。
"""

import dataclasses
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .models import Counter


@dataclass
class CounterSummary:
    """计数器的取值范围"""
    min_count: float
    max_count: float
    count_range: float
    accumulated_counts: List[float]


def accumulate_counter_samples(counts: List[Optional[float]], relative: bool) -> List[float]:
    """
    把计数器采样转换为绝对值序列

    Args:
        counts: 采样值
        relative: 采样值是否是增量

    Returns:
        List[float]: 与输入等长的绝对值序列；非 relative 时原样返回
    """
    if not relative:
        return list(counts)
    if not counts:
        return []
    deltas = np.array([count if count is not None else 0 for count in counts], dtype=np.float64)
    deltas[0] = 0
    return np.cumsum(deltas).tolist()


def normalize_counter(counter: Counter) -> Counter:
    """返回计数值为绝对值的新计数器"""
    if not counter.relative:
        return counter
    samples = dataclasses.replace(
        counter.samples,
        time=list(counter.samples.time),
        count=accumulate_counter_samples(counter.samples.count, True),
        number=list(counter.samples.number),
    )
    return dataclasses.replace(counter, samples=samples, relative=False)


def get_counter_summary(counter: Counter) -> CounterSummary:
    """计算累加后的最小值、最大值和范围"""
    accumulated = accumulate_counter_samples(counter.samples.count, counter.relative)
    if not accumulated:
        return CounterSummary(0, 0, 0, [])
    values = np.array(accumulated, dtype=np.float64)
    min_count = float(values.min())
    max_count = float(values.max())
    return CounterSummary(min_count, max_count, max_count - min_count, accumulated)
