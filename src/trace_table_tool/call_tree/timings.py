# -*- coding: utf-8 -*-
"""
调用树的权重统计
"""

from dataclasses import dataclass

import numpy as np

from ..models import Thread
from .call_node_table import CallNodeInfo, NO_NODE


@dataclass(eq=False)
class CallTreeTimings:
    """每个调用节点的 self 权重和 total 权重"""
    self_weight: np.ndarray
    total_weight: np.ndarray
    root_total: float


def compute_call_tree_timings(thread: Thread, call_node_info: CallNodeInfo) -> CallTreeTimings:
    """
    按采样计算每个调用节点的权重

    非倒置树中 self 权重落在采样的叶子节点上；倒置树中 self 权重等于根节点的 total 权重，
    其余节点为 0。

    Args:
        thread: 与 call_node_info 对应的线程（已经过同样的过滤）
        call_node_info: 调用节点信息

    Returns:
        CallTreeTimings: 权重统计
    """
    table = call_node_info.get_call_node_table()
    stack_map = call_node_info.get_stack_index_to_call_node_index()
    samples = thread.samples
    weights = samples.weight if samples.weight is not None else [1] * samples.length

    leaf_weight = np.zeros(table.length, dtype=np.float64)
    for stack, weight in zip(samples.stack, weights):
        if stack is None:
            continue
        node = stack_map[stack]
        if node != NO_NODE:
            leaf_weight[node] += weight

    total_weight = leaf_weight.copy()
    for index in range(table.length - 1, -1, -1):
        parent = table.prefix[index]
        if parent != NO_NODE:
            total_weight[parent] += total_weight[index]

    if call_node_info.is_inverted():
        self_weight = np.where(table.prefix == NO_NODE, total_weight, 0.0)
    else:
        self_weight = leaf_weight
    root_total = float(total_weight[table.prefix == NO_NODE].sum()) if table.length else 0.0
    return CallTreeTimings(self_weight=self_weight, total_weight=total_weight, root_total=root_total)
