# -*- coding: utf-8 -*-
"""
Profile 分析主流程

每个线程独立构建调用树并统计权重，可以按线程并行。
某个线程的栈表损坏只影响该线程。
"""

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import logging

from ..call_tree import compute_call_node_info, compute_call_tree_timings, compute_inverted_call_node_info
from ..categories import get_category_index, DEFAULT_CATEGORY_NAME
from ..config import ProcessingConfig
from ..counters import get_counter_summary
from ..errors import CorruptStackTableError
from ..markers import get_tracing_markers
from ..models import Profile, Thread
from ..parser import parse_profile_file
from ..profile_data import filter_thread_by_implementation, get_self_stack_indexes
from ..symbolication import SymbolTableProvider, run_symbolication
from .presenter import present_profile_summary

logger = logging.getLogger(__name__)


@dataclass
class ThreadSummary:
    """单个线程的调用树汇总"""
    thread_index: int
    thread_name: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    sample_count: int = 0
    call_node_count: int = 0
    error: Optional[str] = None


def _call_tree_rows(thread: Thread, thread_index: int, call_node_info, categories) -> List[Dict[str, Any]]:
    table = call_node_info.get_call_node_table()
    timings = compute_call_tree_timings(thread, call_node_info)
    root_total = timings.root_total or 1
    rows = []
    for node in range(table.length):
        func = int(table.func[node])
        category = int(table.category[node])
        resource = thread.func_table.resource[func]
        rows.append({
            'thread': thread.name,
            'thread_index': thread_index,
            'call_node': node,
            'parent': int(table.prefix[node]),
            'depth': int(table.depth[node]),
            'function': thread.get_func_name(func),
            'resource': (thread.string_table.get_string(thread.resource_table.name[resource])
                         if resource is not None and resource >= 0 else ''),
            'category': categories[category]['name'] if 0 <= category < len(categories) else '',
            'self': float(timings.self_weight[node]),
            'total': float(timings.total_weight[node]),
            'self_ratio': float(timings.self_weight[node]) / root_total * 100,
            'total_ratio': float(timings.total_weight[node]) / root_total * 100,
        })
    return rows


def _summarize_thread_internal(args) -> ThreadSummary:
    """处理单个线程的内部函数，用于并行处理"""
    thread, thread_index, categories, implementation, inverted = args
    summary = ThreadSummary(thread_index=thread_index, thread_name=thread.name,
                            sample_count=thread.samples.length)
    try:
        filtered = filter_thread_by_implementation(thread, implementation, thread_index)
        default_category = get_category_index(categories, DEFAULT_CATEGORY_NAME)
        self_stacks = get_self_stack_indexes(filtered)
        call_node_info = compute_call_node_info(
            filtered.stack_table, filtered.frame_table, filtered.func_table,
            self_stacks, default_category, thread_index)
        if inverted:
            call_node_info = compute_inverted_call_node_info(call_node_info, self_stacks, default_category)
    except CorruptStackTableError as e:
        logger.error(f"线程 {thread_index} ({thread.name}) 处理失败: {e}")
        summary.error = str(e)
        return summary

    summary.rows = _call_tree_rows(filtered, thread_index, call_node_info, categories)
    summary.call_node_count = call_node_info.get_call_node_table().length
    return summary


def summarize_profile(profile: Profile, implementation: str = 'combined', inverted: bool = False,
                      max_workers: Optional[int] = None) -> List[ThreadSummary]:
    """
    为每个线程生成调用树汇总

    Args:
        profile: 处理后的 profile
        implementation: 实现过滤器
        inverted: 是否使用倒置调用树
        max_workers: 并行进程数，为 1 时在当前进程中串行处理

    Returns:
        List[ThreadSummary]: 按线程索引排序的汇总
    """
    tasks = [
        (thread, thread_index, profile.categories, implementation, inverted)
        for thread_index, thread in enumerate(profile.threads)
    ]
    if max_workers == 1 or len(tasks) <= 1:
        summaries = [_summarize_thread_internal(task) for task in tasks]
    else:
        summaries = []
        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_summarize_thread_internal, task) for task in tasks]
            for future in as_completed(futures):
                summaries.append(future.result())
    summaries.sort(key=lambda summary: summary.thread_index)
    return summaries


def counter_rows(profile: Profile) -> List[Dict[str, Any]]:
    """计数器的取值范围"""
    rows = []
    for counter in profile.counters:
        summary = get_counter_summary(counter)
        rows.append({
            'name': counter.name,
            'category': counter.category,
            'relative': counter.relative,
            'samples': counter.samples.length,
            'min': summary.min_count,
            'max': summary.max_count,
            'range': summary.count_range,
        })
    return rows


def marker_rows(profile: Profile) -> List[Dict[str, Any]]:
    """所有线程的区间标记"""
    rows = []
    for thread_index, thread in enumerate(profile.threads):
        for marker in get_tracing_markers(thread):
            rows.append({
                'thread': thread.name,
                'thread_index': thread_index,
                'name': marker.name,
                'title': marker.title or '',
                'start': marker.start,
                'dur': marker.dur,
            })
    return rows


def load_and_symbolicate(file_path: Union[str, Path], symbols_file: Optional[str] = None) -> Profile:
    """加载 profile，提供符号表文件时同时完成符号化"""
    profile = parse_profile_file(file_path)
    if symbols_file:
        provider = SymbolTableProvider.from_json_file(symbols_file)
        profile, failures = run_symbolication(profile, provider)
        for failure in failures:
            print(f"警告: {failure}")
    return profile


def analyze_profile_file(file_path: Union[str, Path], config: ProcessingConfig) -> Tuple[List[ThreadSummary], List[Path]]:
    """
    分析单个 profile 文件并生成输出

    Returns:
        Tuple[List[ThreadSummary], List[Path]]: 线程汇总和生成的文件
    """
    print(f"开始分析文件: {file_path}")
    profile = load_and_symbolicate(file_path, config.symbols_file)
    print(f"加载完成: {len(profile.threads)} 个线程, {len(profile.counters)} 个计数器")

    summaries = summarize_profile(profile, config.implementation, config.inverted, config.max_workers)
    failed = [summary for summary in summaries if summary.error]
    if failed:
        print(f"警告: {len(failed)} 个线程的栈表损坏，已跳过")

    generated_files = present_profile_summary(
        summaries, counter_rows(profile), marker_rows(profile), config)
    return summaries, generated_files
