# -*- coding: utf-8 -*-
"""
标记（marker）处理工具
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple
import logging

from .models import MarkerPhase, Thread

logger = logging.getLogger(__name__)


@dataclass
class TracingMarker:
    """折叠后的区间标记"""
    start: float
    dur: float
    name: str
    title: Optional[str]
    data: Optional[Dict[str, Any]]


def marker_timing_from_payload(time: Optional[float],
                               data: Optional[Dict[str, Any]]) -> Tuple[Optional[float], Optional[float], int]:
    """
    把旧版单一时间戳的标记转换为 (startTime, endTime, phase)

    Args:
        time: 旧版标记的 time 字段
        data: 标记负载

    Returns:
        Tuple: (startTime, endTime, phase)
    """
    if isinstance(data, dict):
        interval = data.get('interval')
        if interval == 'start':
            return time, None, MarkerPhase.interval_start
        if interval == 'end':
            return None, time, MarkerPhase.interval_end
        start = data.get('startTime')
        end = data.get('endTime')
        if isinstance(start, (int, float)) and isinstance(end, (int, float)):
            return start, end, MarkerPhase.interval
    return time, None, MarkerPhase.instant


def get_tracing_markers(thread: Thread) -> List[TracingMarker]:
    """
    从标记表推导区间标记

    成对的 interval_start/interval_end 标记（按名称匹配）折叠为一个标记，
    interval 标记直接转换，instant 标记的持续时间为 0。
    没有开始的结束标记从线程第一个采样时间开始，没有结束的开始标记延续到最后一个采样时间。

    Args:
        thread: 线程

    Returns:
        List[TracingMarker]: 按开始时间排序的标记列表
    """
    markers = thread.markers
    string_table = thread.string_table
    samples_time = thread.samples.time
    thread_start = samples_time[0] if samples_time else 0
    thread_end = samples_time[-1] if samples_time else 0

    result: List[TracingMarker] = []
    open_markers: Dict[str, List[Tuple[float, Optional[Dict[str, Any]]]]] = defaultdict(list)

    for index in range(markers.length):
        name = string_table.get_string(markers.name[index])
        data = markers.data[index]
        phase = markers.phase[index]
        start = markers.start_time[index]
        end = markers.end_time[index]
        title = data.get('title') if isinstance(data, dict) else None

        if phase == MarkerPhase.interval_start:
            open_markers[name].append((start, data))
        elif phase == MarkerPhase.interval_end:
            if open_markers[name]:
                open_start, open_data = open_markers[name].pop()
                open_title = open_data.get('title') if isinstance(open_data, dict) else None
                result.append(TracingMarker(open_start, end - open_start, name, open_title, open_data))
            else:
                logger.debug(f"标记 {name} 缺少开始时间，从线程起点开始计算")
                result.append(TracingMarker(thread_start, end - thread_start, name, title, data))
        elif phase == MarkerPhase.interval:
            result.append(TracingMarker(start, end - start, name, title, data))
        else:
            result.append(TracingMarker(start, 0, name, title, data))

    for name, pending in open_markers.items():
        for open_start, open_data in pending:
            logger.debug(f"标记 {name} 没有结束，延续到线程终点")
            open_title = open_data.get('title') if isinstance(open_data, dict) else None
            result.append(TracingMarker(open_start, max(thread_end - open_start, 0), name, open_title, open_data))

    result.sort(key=lambda marker: marker.start)
    return result
