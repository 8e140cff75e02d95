# -*- coding: utf-8 -*-
"""
线程数据查询与过滤
"""

import bisect
import dataclasses
from typing import Dict, List, Optional, Tuple
import logging

from .errors import CorruptStackTableError
from .models import Lib, StackTable, Thread, MarkersTable

logger = logging.getLogger(__name__)


def get_containing_library_index(libs: List[Lib], address: int) -> int:
    """
    二分查找包含某个地址的库

    Args:
        libs: 按 start 升序排列且互不重叠的库列表
        address: 绝对地址

    Returns:
        int: 库在 libs 中的位置，地址落在空洞或范围外时返回 -1
    """
    if not libs:
        return -1
    starts = [lib.start for lib in libs]
    position = bisect.bisect_right(starts, address) - 1
    if position < 0:
        return -1
    lib = libs[position]
    if lib.start <= address < lib.end:
        return position
    return -1


def get_containing_library(libs: List[Lib], address: int) -> Optional[Lib]:
    """包含某个地址的库，找不到时返回 None"""
    position = get_containing_library_index(libs, address)
    return libs[position] if position >= 0 else None


def get_self_stack_indexes(thread: Thread) -> List[int]:
    """
    收集被采样或标记直接引用的栈（"self" 栈）

    Returns:
        List[int]: 升序排列的栈索引
    """
    self_stacks = {stack for stack in thread.samples.stack if stack is not None}
    for data in thread.markers.data:
        if isinstance(data, dict) and isinstance(data.get('stack'), int):
            self_stacks.add(data['stack'])
    return sorted(self_stacks)


def stack_processing_order(stack_table: StackTable, thread_index: Optional[int] = None) -> List[int]:
    """
    计算一个前缀总在子节点之前的栈处理顺序

    栈表不保证 prefix < index，所以需要沿前缀链补齐顺序。

    Raises:
        CorruptStackTableError: 前缀链存在环或引用越界
    """
    stack_count = stack_table.length
    visited = [False] * stack_count
    order: List[int] = []

    for stack_index in range(stack_count):
        if visited[stack_index]:
            continue
        chain = []
        in_chain = set()
        current = stack_index
        while current is not None and not visited[current]:
            if current in in_chain:
                raise CorruptStackTableError(stack_index, thread_index, "前缀链存在环")
            chain.append(current)
            in_chain.add(current)
            prefix = stack_table.prefix[current]
            if prefix is not None and not 0 <= prefix < stack_count:
                raise CorruptStackTableError(current, thread_index, f"前缀 {prefix} 越界")
            current = prefix
        for chained in reversed(chain):
            visited[chained] = True
            order.append(chained)
    return order


def _remap_marker_stacks(markers: MarkersTable, stack_map: Dict[int, Optional[int]]) -> MarkersTable:
    new_data = []
    for data in markers.data:
        if isinstance(data, dict) and isinstance(data.get('stack'), int):
            data = dict(data)
            data['stack'] = stack_map.get(data['stack'])
        new_data.append(data)
    return dataclasses.replace(markers, data=new_data)


def filter_thread_by_implementation(thread: Thread, implementation: str,
                                    thread_index: Optional[int] = None) -> Thread:
    """
    按实现方式过滤线程的栈

    Args:
        thread: 线程
        implementation: 'combined'（不过滤）、'js'（只保留 JS 帧）或 'cpp'（只保留非 JS 帧）

    Returns:
        Thread: 新线程对象；被过滤掉的帧折叠到其最近的保留祖先上
    """
    if implementation == 'combined':
        return thread
    if implementation == 'js':
        def keep(func_index):
            return thread.func_table.is_js[func_index] or thread.func_table.relevant_for_js[func_index]
    elif implementation == 'cpp':
        def keep(func_index):
            return not thread.func_table.is_js[func_index]
    else:
        raise ValueError(f"不支持的实现过滤器: {implementation}")

    stack_table = thread.stack_table
    frame_table = thread.frame_table
    new_stack_table = StackTable()
    old_to_new: Dict[int, Optional[int]] = {}
    key_to_new: Dict[Tuple[Optional[int], int], int] = {}

    for stack_index in stack_processing_order(stack_table, thread_index):
        prefix = stack_table.prefix[stack_index]
        new_prefix = old_to_new[prefix] if prefix is not None else None
        frame_index = stack_table.frame[stack_index]
        if keep(frame_table.func[frame_index]):
            key = (new_prefix, frame_index)
            new_index = key_to_new.get(key)
            if new_index is None:
                new_index = new_stack_table.length
                new_stack_table.frame.append(frame_index)
                new_stack_table.prefix.append(new_prefix)
                new_stack_table.category.append(stack_table.category[stack_index])
                new_stack_table.subcategory.append(stack_table.subcategory[stack_index])
                key_to_new[key] = new_index
            old_to_new[stack_index] = new_index
        else:
            old_to_new[stack_index] = new_prefix

    samples = thread.samples
    new_samples = dataclasses.replace(
        samples,
        stack=[old_to_new[stack] if stack is not None else None for stack in samples.stack],
        time=list(samples.time),
        event_delay=list(samples.event_delay),
        weight=list(samples.weight) if samples.weight is not None else None,
    )
    logger.debug(f"实现过滤 {implementation}: 栈数量 {stack_table.length} -> {new_stack_table.length}")
    return dataclasses.replace(
        thread,
        stack_table=new_stack_table,
        samples=new_samples,
        markers=_remap_marker_stacks(thread.markers, old_to_new),
    )


def get_stack_func_path(thread: Thread, stack_index: int) -> List[int]:
    """从根到给定栈的函数索引序列"""
    path = []
    current = stack_index
    guard = thread.stack_table.length
    while current is not None:
        if guard < 0:
            raise CorruptStackTableError(stack_index, None, "前缀链存在环")
        guard -= 1
        path.append(thread.frame_table.func[thread.stack_table.frame[current]])
        current = thread.stack_table.prefix[current]
    path.reverse()
    return path
