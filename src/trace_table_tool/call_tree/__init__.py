"""
调用树模块

- call_node_table: 栈表归并为深度优先编号的调用节点表
- inverted: 倒置调用树
- timings: 调用节点的权重统计
- cache: 按线程代数失效的缓存
"""

from .call_node_table import CallNodeTable, CallNodeInfo, compute_call_node_info, NO_NODE
from .inverted import compute_inverted_call_node_info
from .timings import CallTreeTimings, compute_call_tree_timings
from .cache import CallNodeInfoCache

__all__ = [
    'CallNodeTable',
    'CallNodeInfo',
    'compute_call_node_info',
    'NO_NODE',
    'compute_inverted_call_node_info',
    'CallTreeTimings',
    'compute_call_tree_timings',
    'CallNodeInfoCache',
]
