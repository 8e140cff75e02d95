# -*- coding: utf-8 -*-
"""
倒置调用树

非倒置路径 A -> B -> C 在倒置树中成为 C -> B -> A，根节点就是 self 函数。
只有 self 栈会产生倒置路径，只作为前缀出现的栈在映射中为 -1。
"""

from typing import Dict, Iterable
import logging

import numpy as np

from .call_node_table import CallNodeInfo, NO_NODE, _CallNodeArena

logger = logging.getLogger(__name__)


def compute_inverted_call_node_info(non_inverted_info: CallNodeInfo, self_stacks: Iterable[int],
                                    default_category: int) -> CallNodeInfo:
    """
    从非倒置的调用节点信息推导倒置的调用节点信息

    Args:
        non_inverted_info: 非倒置的调用节点信息
        self_stacks: 被采样或标记直接引用的栈
        default_category: 分类冲突时使用的默认分类

    Returns:
        CallNodeInfo: 倒置的调用节点信息，stack 映射指向每个 self 栈完整倒置路径的末端节点
    """
    table = non_inverted_info.get_call_node_table()
    stack_map = non_inverted_info.get_stack_index_to_call_node_index()
    self_stacks = sorted({stack for stack in self_stacks if 0 <= stack < len(stack_map)})
    self_nodes = sorted({int(stack_map[stack]) for stack in self_stacks if stack_map[stack] != NO_NODE})

    arena = _CallNodeArena(default_category)
    inverted_leaf: Dict[int, int] = {}
    for self_node in self_nodes:
        parent = NO_NODE
        current = self_node
        while current != NO_NODE:
            parent = arena.get_or_create(
                parent, int(table.func[current]), int(table.category[current]), int(table.subcategory[current]))
            current = int(table.prefix[current])
        inverted_leaf[self_node] = parent

    inverted_table, old_to_new = arena.finalize()
    inverted_stack_map = np.full(len(stack_map), NO_NODE, dtype=np.int32)
    for stack in self_stacks:
        node = int(stack_map[stack])
        if node != NO_NODE:
            inverted_stack_map[stack] = old_to_new[inverted_leaf[node]]

    logger.debug(f"倒置调用树: {len(self_nodes)} 个 self 节点 -> {inverted_table.length} 个倒置节点")
    return CallNodeInfo(inverted_table, inverted_stack_map, non_inverted_info=non_inverted_info)
