# -*- coding: utf-8 -*-
"""
异步符号化

每个库单独请求符号服务，一个库失败不影响其他库。每个库完成后产生一个批次：
批次内所有线程的合并和命名作为一次原子更新应用到 ProfileStore。
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Set, Tuple
import logging

from ..config import SYMBOLICATION_MAX_CONCURRENCY
from ..errors import SymbolProviderError
from ..models import Profile, Thread
from ..store import ProfileStore, StoreChange
from .merging import (
    MergeMap, apply_symbolication_batch, collect_library_addresses, compute_func_merge_map, remap_call_node_path,
)
from .provider import LibraryIdentity, SymbolProvider

logger = logging.getLogger(__name__)


@dataclass
class SymbolicationBatch:
    """一个库的符号化结果"""
    library: LibraryIdentity
    lib_index: int
    thread_updates: Dict[int, Thread] = field(default_factory=dict)
    merge_maps: Dict[int, MergeMap] = field(default_factory=dict)


def _build_batch(threads: List[Thread], lib_index: int, library: LibraryIdentity,
                 symbols: Dict[int, str]) -> SymbolicationBatch:
    batch = SymbolicationBatch(library=library, lib_index=lib_index)
    for thread_index, thread in enumerate(threads):
        merge_map, names = compute_func_merge_map(thread, lib_index, symbols)
        if not merge_map and not names:
            continue
        batch.thread_updates[thread_index] = apply_symbolication_batch(thread, merge_map, names)
        batch.merge_maps[thread_index] = merge_map
    return batch


async def symbolicate_profile(profile: Profile, provider: SymbolProvider,
                              on_batch: Callable[[SymbolicationBatch], None],
                              max_concurrency: int = SYMBOLICATION_MAX_CONCURRENCY) -> List[SymbolProviderError]:
    """
    符号化 profile 中所有原生函数

    Args:
        profile: 要符号化的 profile（不会被修改）
        provider: 符号服务
        on_batch: 每个库完成后调用一次
        max_concurrency: 同时进行的库请求数

    Returns:
        List[SymbolProviderError]: 失败的库
    """
    library_addresses = collect_library_addresses(profile)
    if not library_addresses:
        logger.info("没有需要符号化的地址")
        return []

    semaphore = asyncio.Semaphore(max_concurrency)

    async def request(lib_index: int, addresses: Set[int]) -> Tuple[int, LibraryIdentity, Dict[int, str]]:
        library = LibraryIdentity.from_lib(profile.libs[lib_index])
        async with semaphore:
            try:
                symbols = await provider.request_symbols(library, sorted(addresses))
            except SymbolProviderError:
                raise
            except Exception as e:
                raise SymbolProviderError(library.debug_name, library.breakpad_id, e) from e
        return lib_index, library, symbols

    # 批次基于本地快照依次叠加，后面的批次可以在前面的合并结果上继续合并
    threads = list(profile.threads)
    failures: List[SymbolProviderError] = []
    tasks = [asyncio.ensure_future(request(lib_index, addresses))
             for lib_index, addresses in sorted(library_addresses.items())]
    try:
        for next_result in asyncio.as_completed(tasks):
            try:
                lib_index, library, symbols = await next_result
            except SymbolProviderError as e:
                logger.warning(str(e))
                failures.append(e)
                continue
            batch = _build_batch(threads, lib_index, library, symbols)
            for thread_index, thread in batch.thread_updates.items():
                threads[thread_index] = thread
            logger.info(f"{library.debug_name}: 更新 {len(batch.thread_updates)} 个线程")
            on_batch(batch)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
    return failures


class SymbolicationSession:
    """
    一次 profile 符号化

    批次应用到 ProfileStore 时每批只通知一次；cancel 之后丢弃尚未完成的请求，
    已经应用的批次不回滚。
    """

    def __init__(self, store: ProfileStore, provider: SymbolProvider,
                 max_concurrency: int = SYMBOLICATION_MAX_CONCURRENCY):
        self._store = store
        self._provider = provider
        self._max_concurrency = max_concurrency
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False
        self.failures: List[SymbolProviderError] = []
        self.applied_batches = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _apply_batch(self, batch: SymbolicationBatch) -> None:
        if self._cancelled:
            return
        self._store.replace_threads(batch.thread_updates, batch.merge_maps)
        self.applied_batches += 1

    async def run(self) -> List[SymbolProviderError]:
        """运行符号化直到所有库完成；全部成功时把 meta.symbolicated 置为 True"""
        self.failures = await symbolicate_profile(
            self._store.profile, self._provider, self._apply_batch, self._max_concurrency)
        if not self._cancelled and not self.failures:
            self._store.update_meta({'symbolicated': True})
        return self.failures

    def start(self) -> asyncio.Task:
        """在当前事件循环中启动符号化"""
        self._task = asyncio.ensure_future(self.run())
        return self._task

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class CallNodePathSelection:
    """
    按线程保存以函数序列表示的选中调用节点路径

    订阅 ProfileStore，函数合并后把路径映射到保留下来的函数。
    """

    def __init__(self, store: ProfileStore):
        self._paths: Dict[int, List[int]] = {}
        self._unsubscribe = store.subscribe(self._on_store_change)

    def select(self, thread_index: int, path: List[int]) -> None:
        self._paths[thread_index] = list(path)

    def get_selected_path(self, thread_index: int) -> Optional[List[int]]:
        return self._paths.get(thread_index)

    def _on_store_change(self, change: StoreChange) -> None:
        for thread_index, merge_map in change.func_merges.items():
            path = self._paths.get(thread_index)
            if path is None:
                continue
            self._paths[thread_index] = remap_call_node_path(path, merge_map)
            logger.debug(f"线程 {thread_index} 的选中路径随函数合并更新: {path} -> {self._paths[thread_index]}")

    def close(self) -> None:
        self._unsubscribe()


def run_symbolication(profile: Profile, provider: SymbolProvider,
                      max_concurrency: int = SYMBOLICATION_MAX_CONCURRENCY) -> Tuple[Profile, List[SymbolProviderError]]:
    """
    同步运行一次符号化，供命令行使用

    Returns:
        Tuple[Profile, List[SymbolProviderError]]: 符号化后的 profile 和失败的库
    """
    store = ProfileStore(profile)
    session = SymbolicationSession(store, provider, max_concurrency)
    failures = asyncio.run(session.run())
    return store.profile, failures
