# -*- coding: utf-8 -*-
"""
原始采集到处理后表格的构建

输入必须已经升级到当前的 gecko 版本。每个线程的表由该线程自己的字符串表引用，
库在整个 profile 范围内去重。
"""

import copy
from typing import Any, Dict, List, Optional, Tuple
import logging

from .categories import default_categories, get_category_index, DEFAULT_CATEGORY_NAME
from .errors import CorruptStackTableError
from .locations import FuncTableBuilder
from .models import (
    Counter, CounterSamplesTable, FrameTable, Lib, MarkersTable, Profile, SamplesTable,
    StackTable, StringTable, Thread,
)
from .profile_data import stack_processing_order
from .upgrade.processed_versioning import CURRENT_PROCESSED_VERSION
from .utils import shift_times, sort_data_table

logger = logging.getLogger(__name__)

# 标记负载中需要随子进程时间偏移一起平移的字段
_PAYLOAD_TIME_FIELDS = ('startTime', 'endTime', 'timeStamp')


def _schema_column(table: Dict[str, Any], key: str) -> List[Any]:
    """取出 {schema, data} 表中的一列，行比 schema 短时补 None"""
    index = table['schema'].get(key)
    if index is None:
        return [None] * len(table['data'])
    return [row[index] if index < len(row) else None for row in table['data']]


class _LibraryRegistry:
    """profile 级别的库列表，按 (debugName, breakpadId) 去重"""

    def __init__(self):
        self.libs: List[Lib] = []
        self._keys: Dict[tuple, int] = {}

    def add_process_libs(self, lib_dicts: List[Dict[str, Any]]) -> Tuple[List[Lib], List[int]]:
        """
        注册一个进程的库

        Returns:
            Tuple[List[Lib], List[int]]: 按起始地址排序的进程库列表及其在 profile 库列表中的索引
        """
        process_libs = sorted((Lib.from_dict(lib) for lib in lib_dicts), key=lambda lib: lib.start)
        indexes = []
        for lib in process_libs:
            index = self._keys.get(lib.identity_key)
            if index is None:
                index = len(self.libs)
                self.libs.append(lib)
                self._keys[lib.identity_key] = index
            indexes.append(index)
        return process_libs, indexes


def _shift_payload(payload: Any, delta: float) -> Any:
    if not delta or not isinstance(payload, dict):
        return payload
    shifted = dict(payload)
    for key in _PAYLOAD_TIME_FIELDS:
        if isinstance(shifted.get(key), (int, float)):
            shifted[key] = shifted[key] + delta
    return shifted


def _intern(string_table: StringTable, gecko_strings: List[str], index: Optional[int]) -> Optional[int]:
    if index is None:
        return None
    return string_table.index_for_string(gecko_strings[index])


def _process_frame_table(thread: Dict[str, Any], builder: FuncTableBuilder) -> FrameTable:
    gecko_strings = thread['stringTable']
    gecko_frames = thread['frameTable']
    frame_table = FrameTable()
    locations = _schema_column(gecko_frames, 'location')
    implementations = _schema_column(gecko_frames, 'implementation')
    lines = _schema_column(gecko_frames, 'line')
    columns = _schema_column(gecko_frames, 'column')
    categories = _schema_column(gecko_frames, 'category')
    subcategories = _schema_column(gecko_frames, 'subcategory')
    relevant_for_js = _schema_column(gecko_frames, 'relevantForJS')
    inner_window_ids = _schema_column(gecko_frames, 'innerWindowID')

    for index, location_index in enumerate(locations):
        func, address = builder.add_location(gecko_strings[location_index], bool(relevant_for_js[index]))
        category = categories[index]
        frame_table.address.append(address)
        frame_table.category.append(category)
        frame_table.subcategory.append(subcategories[index] if category is not None else None)
        frame_table.func.append(func)
        frame_table.implementation.append(_intern(builder.string_table, gecko_strings, implementations[index]))
        frame_table.line.append(lines[index])
        frame_table.column.append(columns[index])
        frame_table.inner_window_id.append(inner_window_ids[index] or 0)
    return frame_table


def _process_stack_table(thread: Dict[str, Any], frame_table: FrameTable,
                         default_category: int, thread_index: int) -> StackTable:
    """帧没有分类时，栈继承前缀栈的分类；根栈使用默认分类"""
    gecko_stacks = thread['stackTable']
    stack_table = StackTable(
        frame=_schema_column(gecko_stacks, 'frame'),
        prefix=_schema_column(gecko_stacks, 'prefix'),
    )
    stack_count = stack_table.length
    stack_table.category = [default_category] * stack_count
    stack_table.subcategory = [0] * stack_count
    try:
        order = stack_processing_order(stack_table, thread_index)
    except CorruptStackTableError as e:
        # 损坏的线程照常构建，错误在构建调用树时按线程报告
        logger.warning(f"线程 {thread_index} 的栈表损坏，按索引顺序继承分类: {e}")
        order = range(stack_count)
    for stack_index in order:
        frame = stack_table.frame[stack_index]
        if frame is not None and 0 <= frame < frame_table.length:
            category = frame_table.category[frame]
            if category is not None:
                stack_table.category[stack_index] = category
                stack_table.subcategory[stack_index] = frame_table.subcategory[frame] or 0
                continue
        prefix = stack_table.prefix[stack_index]
        if prefix is not None and 0 <= prefix < stack_count:
            stack_table.category[stack_index] = stack_table.category[prefix]
            stack_table.subcategory[stack_index] = stack_table.subcategory[prefix]
    return stack_table


def _process_samples(thread: Dict[str, Any], delta: float) -> SamplesTable:
    gecko_samples = thread['samples']
    return SamplesTable(
        stack=_schema_column(gecko_samples, 'stack'),
        time=shift_times(_schema_column(gecko_samples, 'time'), delta),
        event_delay=_schema_column(gecko_samples, 'eventDelay'),
    )


def _process_markers(thread: Dict[str, Any], string_table: StringTable, delta: float) -> MarkersTable:
    gecko_strings = thread['stringTable']
    gecko_markers = thread['markers']
    markers = MarkersTable(
        data=[_shift_payload(payload, delta) for payload in _schema_column(gecko_markers, 'data')],
        name=[_intern(string_table, gecko_strings, name) for name in _schema_column(gecko_markers, 'name')],
        start_time=shift_times(_schema_column(gecko_markers, 'startTime'), delta),
        end_time=shift_times(_schema_column(gecko_markers, 'endTime'), delta),
        phase=_schema_column(gecko_markers, 'phase'),
        category=_schema_column(gecko_markers, 'category'),
    )
    sort_keys = [start if start is not None else end
                 for start, end in zip(markers.start_time, markers.end_time)]
    sort_data_table(markers, sort_keys, key=lambda time: time if time is not None else 0)
    return markers


def process_thread(thread: Dict[str, Any], process_meta: Dict[str, Any], process_libs: List[Lib],
                   lib_indexes: List[int], categories: List[Dict[str, Any]],
                   delta: float = 0, is_subprocess: bool = False, thread_index: int = 0) -> Thread:
    """
    把一个 gecko 线程转换为处理后的线程

    Args:
        thread: gecko 线程字典
        process_meta: 线程所属进程的 meta
        process_libs: 进程的库列表（按起始地址排序）
        lib_indexes: process_libs 中各库在 profile 库列表中的索引
        categories: profile 的分类列表
        delta: 进程起始时间相对主进程的偏移，所有时间戳都加上它
        is_subprocess: 是否属于子进程
        thread_index: 线程在 profile 中的位置，用于错误信息

    Returns:
        Thread: 处理后的线程
    """
    string_table = StringTable()
    builder = FuncTableBuilder(string_table, process_libs, lib_indexes)
    frame_table = _process_frame_table(thread, builder)
    default_category = get_category_index(categories, DEFAULT_CATEGORY_NAME)
    stack_table = _process_stack_table(thread, frame_table, default_category, thread_index)

    name = thread.get('name', '')
    if is_subprocess and name == 'Content':
        name = 'GeckoMain'

    unregister_time = thread.get('unregisterTime')
    shutdown_time = process_meta.get('shutdownTime')
    return Thread(
        name=name,
        process_type=thread.get('processType', 'default'),
        pid=thread.get('pid'),
        tid=thread.get('tid'),
        register_time=(thread.get('registerTime') or 0) + delta,
        unregister_time=unregister_time + delta if unregister_time is not None else None,
        process_startup_time=delta,
        process_shutdown_time=shutdown_time + delta if shutdown_time is not None else None,
        samples=_process_samples(thread, delta),
        markers=_process_markers(thread, string_table, delta),
        stack_table=stack_table,
        frame_table=frame_table,
        func_table=builder.func_table,
        resource_table=builder.resource_table,
        string_table=string_table,
    )


def _process_counter(counter: Dict[str, Any], main_thread_index: Optional[int],
                     pid: Any, delta: float) -> Counter:
    samples = counter.get('samples') or {'schema': {}, 'data': []}
    return Counter(
        name=counter.get('name', ''),
        category=counter.get('category', ''),
        description=counter.get('description', ''),
        pid=pid,
        main_thread_index=main_thread_index,
        relative=bool(counter.get('relative', False)),
        samples=CounterSamplesTable(
            time=shift_times(_schema_column(samples, 'time'), delta),
            count=_schema_column(samples, 'count'),
            number=_schema_column(samples, 'number'),
        ),
    )


def process_gecko_profile(gecko_profile: Dict[str, Any]) -> Profile:
    """
    把当前版本的 gecko 原始采集转换为处理后的 Profile

    子进程的线程按 startTime 差值平移到主进程的时间轴上。

    Args:
        gecko_profile: 已升级到当前 gecko 版本的文档

    Returns:
        Profile: 处理后的 profile
    """
    meta = copy.deepcopy(gecko_profile['meta'])
    categories = meta.get('categories') or default_categories()
    main_start_time = meta.get('startTime', 0)
    registry = _LibraryRegistry()
    threads: List[Thread] = []
    counters: List[Counter] = []

    def add_process(process_profile: Dict[str, Any], is_subprocess: bool) -> None:
        process_meta = process_profile.get('meta', {})
        delta = process_meta.get('startTime', main_start_time) - main_start_time if is_subprocess else 0
        process_libs, lib_indexes = registry.add_process_libs(process_profile.get('libs', []))

        first_thread_index = len(threads)
        for thread in process_profile.get('threads', []):
            threads.append(process_thread(
                thread, process_meta, process_libs, lib_indexes, categories,
                delta=delta, is_subprocess=is_subprocess, thread_index=len(threads),
            ))

        main_thread_index = first_thread_index if len(threads) > first_thread_index else None
        pid = threads[main_thread_index].pid if main_thread_index is not None else None
        for counter in process_profile.get('counters', []):
            counters.append(_process_counter(counter, main_thread_index, pid, delta))

        for subprocess_profile in process_profile.get('processes', []):
            add_process(subprocess_profile, True)

    add_process(gecko_profile, False)

    meta['categories'] = categories
    meta['preprocessedProfileVersion'] = CURRENT_PROCESSED_VERSION
    meta['symbolicated'] = bool(meta.pop('presymbolicated', False))
    meta.setdefault('markerSchema', [])
    logger.info(f"构建完成: {len(threads)} 个线程, {len(registry.libs)} 个库, {len(counters)} 个计数器")
    return Profile(meta=meta, libs=registry.libs, threads=threads, counters=counters)
