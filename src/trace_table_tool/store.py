# -*- coding: utf-8 -*-
"""
Profile 快照存储

线程对象一旦发布就不再修改。更新通过整体替换线程快照完成，
每次替换都会增加对应线程的代数并通知一次订阅者。
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from .models import Profile, Thread

logger = logging.getLogger(__name__)


@dataclass
class StoreChange:
    """
    一次变更通知

    Attributes:
        thread_indexes: 快照被替换的线程
        func_merges: 线程索引到 old_func -> new_func 映射，只有函数合并时非空
    """
    thread_indexes: Set[int]
    func_merges: Dict[int, Dict[int, int]] = field(default_factory=dict)


ChangeListener = Callable[[StoreChange], None]


class ProfileStore:
    """持有当前 Profile，并为每个线程维护代数"""

    def __init__(self, profile: Profile):
        self._profile = profile
        self._generations: List[int] = [0] * len(profile.threads)
        self._listeners: List[ChangeListener] = []

    @property
    def profile(self) -> Profile:
        return self._profile

    def get_generation(self, thread_index: int) -> int:
        return self._generations[thread_index]

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        注册变更监听器

        Args:
            listener: 接收 StoreChange

        Returns:
            Callable[[], None]: 取消订阅的函数
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _notify(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            listener(change)

    def replace_threads(self, updates: Dict[int, Thread],
                        func_merges: Optional[Dict[int, Dict[int, int]]] = None) -> None:
        """
        原子地替换一批线程快照，只通知一次

        Args:
            updates: 线程索引到新快照
            func_merges: 这批更新中各线程的函数合并映射，随通知一起发给订阅者
        """
        if not updates:
            return
        threads = list(self._profile.threads)
        for thread_index, thread in updates.items():
            threads[thread_index] = thread
            self._generations[thread_index] += 1
        self._profile = dataclasses.replace(self._profile, threads=threads)
        merges = {thread_index: merge_map for thread_index, merge_map in (func_merges or {}).items()
                  if thread_index in updates and merge_map}
        logger.debug(f"替换线程快照: {sorted(updates)}")
        self._notify(StoreChange(set(updates), merges))

    def update_meta(self, updates: Dict[str, Any]) -> None:
        meta = dict(self._profile.meta)
        meta.update(updates)
        self._profile = dataclasses.replace(self._profile, meta=meta)
        self._notify(StoreChange(set()))

    def load_profile(self, profile: Profile) -> None:
        """加载新的 profile，所有线程视为已变更"""
        self._profile = profile
        self._generations = [generation + 1 for generation in self._generations]
        if len(self._generations) < len(profile.threads):
            self._generations.extend([0] * (len(profile.threads) - len(self._generations)))
        else:
            del self._generations[len(profile.threads):]
        self._notify(StoreChange(set(range(len(profile.threads)))))
