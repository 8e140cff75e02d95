# -*- coding: utf-8 -*-
"""
符号化结果的函数合并

同一资源中解析为同一个符号的多个函数合并为一个：编号最小的函数保留，
其余函数通过 old_func -> new_func 映射指向它。合并不修改原线程，而是返回新的线程快照。
被合并掉的函数行保留在函数表中（名称不变），只是不再被任何帧引用。
"""

import dataclasses
from collections import defaultdict
from typing import Dict, Iterable, List, Set, Tuple
import logging

from ..models import Profile, ResourceType, Thread

logger = logging.getLogger(__name__)

MergeMap = Dict[int, int]


def collect_library_addresses(profile: Profile) -> Dict[int, Set[int]]:
    """
    收集所有线程中需要符号化的原生函数地址

    Returns:
        Dict[int, Set[int]]: profile 库索引到库内相对地址集合
    """
    addresses: Dict[int, Set[int]] = defaultdict(set)
    for thread in profile.threads:
        func_table = thread.func_table
        resource_table = thread.resource_table
        for func in set(thread.frame_table.func):
            resource = func_table.resource[func]
            address = func_table.address[func]
            if resource is None or resource < 0 or address is None or address < 0:
                continue
            if resource_table.type[resource] != ResourceType.library:
                continue
            lib_index = resource_table.lib[resource]
            if lib_index is not None:
                addresses[lib_index].add(address)
    return dict(addresses)


def compute_func_merge_map(thread: Thread, lib_index: int,
                           symbols: Dict[int, str]) -> Tuple[MergeMap, Dict[int, str]]:
    """
    计算一个库的符号化结果在线程上引起的合并和命名

    只考虑仍被帧引用的函数。之前批次已经合并出的函数按其当前名称参与分组，
    所以后续批次可以继续合并到它们上面。

    Args:
        thread: 当前线程快照
        lib_index: profile 库索引
        symbols: 库内相对地址到符号名

    Returns:
        Tuple[MergeMap, Dict[int, str]]: (被合并函数到保留函数的映射, 保留函数的新名称)
    """
    func_table = thread.func_table
    resource_table = thread.resource_table
    library_resources = {
        resource for resource in range(resource_table.length)
        if resource_table.lib[resource] == lib_index and resource_table.type[resource] == ResourceType.library
    }
    if not library_resources:
        return {}, {}

    groups: Dict[Tuple[int, str], List[int]] = defaultdict(list)
    resolved_names: Dict[int, str] = {}
    for func in sorted(set(thread.frame_table.func)):
        resource = func_table.resource[func]
        if resource not in library_resources:
            continue
        address = func_table.address[func]
        if address in symbols:
            name = symbols[address]
            resolved_names[func] = name
        else:
            name = thread.get_func_name(func)
        groups[(resource, name)].append(func)

    merge_map: MergeMap = {}
    for funcs in groups.values():
        survivor = funcs[0]
        for func in funcs[1:]:
            merge_map[func] = survivor

    new_names = {
        func: name for func, name in resolved_names.items()
        if func not in merge_map and thread.get_func_name(func) != name
    }
    return merge_map, new_names


def apply_function_merging(thread: Thread, merge_map: MergeMap) -> Thread:
    """把帧表中对被合并函数的引用改写为保留函数，返回新的线程"""
    if not merge_map:
        return thread
    frame_table = dataclasses.replace(
        thread.frame_table,
        func=[merge_map.get(func, func) for func in thread.frame_table.func],
    )
    return dataclasses.replace(thread, frame_table=frame_table)


def set_func_names(thread: Thread, names: Dict[int, str]) -> Thread:
    """
    设置函数名称，返回新的线程

    字符串表只追加，新旧快照共享同一个字符串表。
    """
    if not names:
        return thread
    name_column = list(thread.func_table.name)
    for func, name in names.items():
        name_column[func] = thread.string_table.index_for_string(name)
    func_table = dataclasses.replace(thread.func_table, name=name_column)
    return dataclasses.replace(thread, func_table=func_table)


def apply_symbolication_batch(thread: Thread, merge_map: MergeMap, names: Dict[int, str]) -> Thread:
    """先合并，再命名"""
    return set_func_names(apply_function_merging(thread, merge_map), names)


def remap_call_node_path(path: Iterable[int], merge_map: MergeMap) -> List[int]:
    """把以函数序列表示的调用节点路径（例如选中的节点）映射到合并后的函数"""
    return [merge_map.get(func, func) for func in path]
