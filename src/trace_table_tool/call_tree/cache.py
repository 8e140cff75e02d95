# -*- coding: utf-8 -*-
"""
调用节点信息缓存

按 (线程索引, 实现过滤, 是否倒置) 缓存，线程代数变化时失效。
"""

from typing import Dict, Tuple
import logging

from ..categories import get_category_index, DEFAULT_CATEGORY_NAME
from ..models import Thread
from ..profile_data import filter_thread_by_implementation, get_self_stack_indexes
from ..store import ProfileStore, StoreChange
from .call_node_table import CallNodeInfo, compute_call_node_info
from .inverted import compute_inverted_call_node_info

logger = logging.getLogger(__name__)


class CallNodeInfoCache:
    """惰性构建并缓存调用节点信息"""

    def __init__(self, store: ProfileStore):
        self._store = store
        self._call_node_infos: Dict[Tuple[int, str, bool], Tuple[int, CallNodeInfo]] = {}
        self._filtered_threads: Dict[Tuple[int, str], Tuple[int, Thread]] = {}
        self.build_count = 0
        self._unsubscribe = store.subscribe(self._on_store_change)

    def _on_store_change(self, change: StoreChange) -> None:
        thread_indexes = change.thread_indexes
        for key in [key for key in self._call_node_infos if key[0] in thread_indexes]:
            del self._call_node_infos[key]
        for key in [key for key in self._filtered_threads if key[0] in thread_indexes]:
            del self._filtered_threads[key]

    def get_filtered_thread(self, thread_index: int, implementation: str = 'combined') -> Thread:
        """按实现方式过滤后的线程"""
        generation = self._store.get_generation(thread_index)
        key = (thread_index, implementation)
        cached = self._filtered_threads.get(key)
        if cached is not None and cached[0] == generation:
            return cached[1]
        thread = filter_thread_by_implementation(
            self._store.profile.threads[thread_index], implementation, thread_index)
        self._filtered_threads[key] = (generation, thread)
        return thread

    def get_call_node_info(self, thread_index: int, implementation: str = 'combined',
                           inverted: bool = False) -> CallNodeInfo:
        """
        获取调用节点信息，缓存未命中或已过期时重新构建

        Raises:
            CorruptStackTableError: 线程的栈表损坏
        """
        generation = self._store.get_generation(thread_index)
        key = (thread_index, implementation, inverted)
        cached = self._call_node_infos.get(key)
        if cached is not None and cached[0] == generation:
            return cached[1]

        thread = self.get_filtered_thread(thread_index, implementation)
        default_category = get_category_index(self._store.profile.categories, DEFAULT_CATEGORY_NAME)
        if inverted:
            non_inverted = self.get_call_node_info(thread_index, implementation, False)
            info = compute_inverted_call_node_info(
                non_inverted, get_self_stack_indexes(thread), default_category)
        else:
            info = compute_call_node_info(
                thread.stack_table, thread.frame_table, thread.func_table,
                get_self_stack_indexes(thread), default_category, thread_index)
        self.build_count += 1
        self._call_node_infos[key] = (generation, info)
        logger.debug(f"构建调用节点信息: 线程 {thread_index}, 过滤 {implementation}, 倒置 {inverted}")
        return info

    def close(self) -> None:
        self._unsubscribe()
