# -*- coding: utf-8 -*-
"""
调用节点表的构建

栈表是按首次出现顺序排列的前缀树，同一个函数序列可能对应多个栈。
这里把它归并为去重后的调用节点树，并按深度优先先序重新编号：
节点 i 及其所有后代恰好占据区间 [i, subtree_range_end[i])。
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple
import logging

import numpy as np

from ..errors import CorruptStackTableError
from ..models import FrameTable, FuncTable, StackTable

logger = logging.getLogger(__name__)

NO_NODE = -1


@dataclass(eq=False)
class CallNodeTable:
    """
    调用节点表（深度优先先序）

    所有列都是 numpy.int32 数组，-1 表示"无"。
    next_sibling[i] 是 i 的下一个兄弟节点；没有兄弟时为 -1。
    """
    prefix: np.ndarray
    next_sibling: np.ndarray
    subtree_range_end: np.ndarray
    func: np.ndarray
    category: np.ndarray
    subcategory: np.ndarray
    depth: np.ndarray
    max_depth: int

    @property
    def length(self) -> int:
        return len(self.func)


class _CallNodeArena:
    """
    构建期间的调用节点存储

    节点按发现顺序编号，children 记录每个节点的子节点（同样按发现顺序）。
    finalize 之后才得到深度优先编号。
    """

    def __init__(self, default_category: int):
        self.default_category = default_category
        self.prefix: List[int] = []
        self.func: List[int] = []
        self.category: List[int] = []
        self.subcategory: List[int] = []
        self.children: List[List[int]] = []
        self.roots: List[int] = []
        self._lookup: Dict[Tuple[int, int], int] = {}

    def get_or_create(self, parent: int, func: int, category: Optional[int], subcategory: Optional[int]) -> int:
        """返回 parent 下函数为 func 的子节点，不存在时创建"""
        if category is None:
            category = self.default_category
            subcategory = 0
        key = (parent, func)
        node = self._lookup.get(key)
        if node is not None:
            # 同一个调用节点的分类不一致时回退到默认分类
            if self.category[node] != category:
                self.category[node] = self.default_category
                self.subcategory[node] = 0
            elif self.subcategory[node] != (subcategory or 0):
                self.subcategory[node] = 0
            return node

        node = len(self.func)
        self.prefix.append(parent)
        self.func.append(func)
        self.category.append(category)
        self.subcategory.append(subcategory or 0)
        self.children.append([])
        if parent == NO_NODE:
            self.roots.append(node)
        else:
            self.children[parent].append(node)
        self._lookup[key] = node
        return node

    def finalize(self) -> Tuple[CallNodeTable, np.ndarray]:
        """
        按深度优先先序重新编号

        Returns:
            Tuple[CallNodeTable, np.ndarray]: 调用节点表，以及发现序号到新编号的映射
        """
        node_count = len(self.func)
        order: List[int] = []
        pending = list(reversed(self.roots))
        while pending:
            node = pending.pop()
            order.append(node)
            pending.extend(reversed(self.children[node]))

        old_to_new = np.full(node_count, NO_NODE, dtype=np.int32)
        old_to_new[np.asarray(order, dtype=np.int64)] = np.arange(node_count, dtype=np.int32)

        old_prefix = [self.prefix[node] for node in order]
        prefix = np.array(
            [old_to_new[parent] if parent != NO_NODE else NO_NODE for parent in old_prefix],
            dtype=np.int32,
        )
        func = np.array([self.func[node] for node in order], dtype=np.int32)
        category = np.array([self.category[node] for node in order], dtype=np.int32)
        subcategory = np.array([self.subcategory[node] for node in order], dtype=np.int32)

        # 先序编号下父节点总在子节点之前
        depth = np.zeros(node_count, dtype=np.int32)
        for index in range(node_count):
            parent = prefix[index]
            if parent != NO_NODE:
                depth[index] = depth[parent] + 1

        subtree_size = np.ones(node_count, dtype=np.int32)
        for index in range(node_count - 1, -1, -1):
            parent = prefix[index]
            if parent != NO_NODE:
                subtree_size[parent] += subtree_size[index]
        subtree_range_end = np.arange(node_count, dtype=np.int32) + subtree_size

        next_sibling = np.full(node_count, NO_NODE, dtype=np.int32)
        for index in range(node_count):
            end = subtree_range_end[index]
            if end < node_count and prefix[end] == prefix[index]:
                next_sibling[index] = end

        table = CallNodeTable(
            prefix=prefix,
            next_sibling=next_sibling,
            subtree_range_end=subtree_range_end,
            func=func,
            category=category,
            subcategory=subcategory,
            depth=depth,
            max_depth=int(depth.max()) if node_count else -1,
        )
        return table, old_to_new


class CallNodeInfo:
    """
    调用节点表及栈到调用节点的映射

    倒置的调用树同时持有其对应的非倒置信息。
    """

    def __init__(self, call_node_table: CallNodeTable, stack_index_to_call_node_index: np.ndarray,
                 non_inverted_info: Optional['CallNodeInfo'] = None):
        self._call_node_table = call_node_table
        self._stack_index_to_call_node_index = stack_index_to_call_node_index
        self._non_inverted_info = non_inverted_info

    def is_inverted(self) -> bool:
        return self._non_inverted_info is not None

    def get_call_node_table(self) -> CallNodeTable:
        return self._call_node_table

    def get_non_inverted_call_node_table(self) -> CallNodeTable:
        if self._non_inverted_info is not None:
            return self._non_inverted_info.get_call_node_table()
        return self._call_node_table

    def get_stack_index_to_call_node_index(self) -> np.ndarray:
        return self._stack_index_to_call_node_index

    def get_stack_index_to_non_inverted_call_node_index(self) -> np.ndarray:
        if self._non_inverted_info is not None:
            return self._non_inverted_info.get_stack_index_to_call_node_index()
        return self._stack_index_to_call_node_index

    def get_call_node_path_from_index(self, call_node_index: int) -> List[int]:
        """从根到该节点的函数序列"""
        table = self._call_node_table
        path = []
        current = call_node_index
        while current != NO_NODE:
            path.append(int(table.func[current]))
            current = int(table.prefix[current])
        path.reverse()
        return path

    def get_call_node_index_from_parent_and_func(self, parent: int, func: int) -> Optional[int]:
        """在 parent 的子节点中查找函数为 func 的节点，parent 为 -1 时查找根节点"""
        table = self._call_node_table
        child = parent + 1
        if child >= table.length or table.prefix[child] != parent:
            return None
        while child != NO_NODE:
            if table.func[child] == func:
                return int(child)
            child = int(table.next_sibling[child])
        return None

    def get_call_node_index_from_path(self, path: Iterable[int]) -> Optional[int]:
        """函数序列对应的调用节点，不存在时返回 None"""
        node = NO_NODE
        for func in path:
            node = self.get_call_node_index_from_parent_and_func(node, func)
            if node is None:
                return None
        return node if node != NO_NODE else None

    def get_children(self, call_node_index: int) -> List[int]:
        table = self._call_node_table
        children = []
        child = call_node_index + 1
        if child < table.length and table.prefix[child] == call_node_index:
            while child != NO_NODE:
                children.append(child)
                child = int(table.next_sibling[child])
        return children

    def is_descendant_of(self, call_node_index: int, ancestor_index: int) -> bool:
        """call_node_index 是否是 ancestor_index 的（严格）后代"""
        end = self._call_node_table.subtree_range_end[ancestor_index]
        return ancestor_index < call_node_index < end


def compute_call_node_info(stack_table: StackTable, frame_table: FrameTable, func_table: FuncTable,
                           self_stacks: Iterable[int], default_category: int,
                           thread_index: Optional[int] = None) -> CallNodeInfo:
    """
    把栈表归并为调用节点树

    只物化 self 栈及其祖先；其余栈在映射中为 -1。

    Args:
        stack_table: 栈表
        frame_table: 帧表
        func_table: 函数表
        self_stacks: 被采样或标记直接引用的栈
        default_category: 分类冲突时使用的默认分类
        thread_index: 线程索引，只用于错误信息

    Returns:
        CallNodeInfo: 非倒置的调用节点信息

    Raises:
        CorruptStackTableError: 前缀链存在环，或者栈/帧/函数引用越界
    """
    stack_count = stack_table.length
    frame_count = frame_table.length
    func_count = func_table.length
    arena = _CallNodeArena(default_category)
    stack_to_node: Dict[int, int] = {}

    for self_stack in sorted(set(self_stacks)):
        if self_stack in stack_to_node:
            continue
        chain = []
        in_chain = set()
        current = self_stack
        while current is not None and current not in stack_to_node:
            if not 0 <= current < stack_count:
                raise CorruptStackTableError(current, thread_index, f"栈引用越界 (共 {stack_count} 个栈)")
            if current in in_chain:
                raise CorruptStackTableError(self_stack, thread_index, "前缀链存在环")
            in_chain.add(current)
            chain.append(current)
            current = stack_table.prefix[current]

        parent = stack_to_node[current] if current is not None else NO_NODE
        for stack_index in reversed(chain):
            frame = stack_table.frame[stack_index]
            if frame is None or not 0 <= frame < frame_count:
                raise CorruptStackTableError(stack_index, thread_index, f"帧引用 {frame} 越界")
            func = frame_table.func[frame]
            if func is None or not 0 <= func < func_count:
                raise CorruptStackTableError(stack_index, thread_index, f"函数引用 {func} 越界")
            parent = arena.get_or_create(
                parent, func, stack_table.category[stack_index], stack_table.subcategory[stack_index])
            stack_to_node[stack_index] = parent

    call_node_table, old_to_new = arena.finalize()
    stack_index_to_call_node_index = np.full(stack_count, NO_NODE, dtype=np.int32)
    for stack_index, node in stack_to_node.items():
        stack_index_to_call_node_index[stack_index] = old_to_new[node]

    logger.debug(f"调用节点构建完成: {stack_count} 个栈 -> {call_node_table.length} 个调用节点")
    return CallNodeInfo(call_node_table, stack_index_to_call_node_index)
