# -*- coding: utf-8 -*-
"""
分类（category）定义
"""

import copy
from dataclasses import dataclass
from typing import Dict, List, Any

from .models import Thread

DEFAULT_CATEGORIES: List[Dict[str, Any]] = [
    {'name': 'Idle', 'color': 'transparent', 'subcategories': ['Other']},
    {'name': 'Other', 'color': 'grey', 'subcategories': ['Other']},
    {'name': 'Layout', 'color': 'purple', 'subcategories': ['Other']},
    {'name': 'JavaScript', 'color': 'yellow', 'subcategories': ['Other']},
    {'name': 'GC / CC', 'color': 'orange', 'subcategories': ['Other']},
    {'name': 'Network', 'color': 'lightblue', 'subcategories': ['Other']},
    {'name': 'Graphics', 'color': 'green', 'subcategories': ['Other']},
    {'name': 'DOM', 'color': 'blue', 'subcategories': ['Other']},
]

DEFAULT_CATEGORY_NAME = 'Other'
JS_CATEGORY_NAME = 'JavaScript'

# 旧版 gecko 帧的 category 位标志
OLD_CATEGORY_FLAGS = [
    (1 << 4, 'Other'),
    (1 << 5, 'Layout'),
    (1 << 6, 'JavaScript'),
    (1 << 7, 'GC / CC'),
    (1 << 8, 'GC / CC'),
    (1 << 9, 'Network'),
    (1 << 10, 'Graphics'),
    (1 << 11, 'Other'),
    (1 << 12, 'DOM'),
]

IMPLEMENTATION_CATEGORY_MAP = {
    'JS Interpreter': 'yellow',
    'JS Baseline': 'orange',
    'JS Ion': 'blue',
    'Platform': 'grey',
}


@dataclass
class ImplementationCategory:
    """按实现方式划分的帧分类"""
    name: str
    color: str


def default_categories() -> List[Dict[str, Any]]:
    """返回默认分类列表的副本"""
    return copy.deepcopy(DEFAULT_CATEGORIES)


def get_category_index(categories: List[Dict[str, Any]], name: str,
                       default_name: str = DEFAULT_CATEGORY_NAME) -> int:
    """
    按名称查找分类索引

    找不到时返回默认分类的索引；默认分类也不存在时返回 0
    """
    fallback = 0
    for index, category in enumerate(categories):
        if category.get('name') == name:
            return index
        if category.get('name') == default_name:
            fallback = index
    return fallback


def category_from_flags(categories: List[Dict[str, Any]], flags) -> Any:
    """把旧版位标志转换为分类索引，无法识别时返回 None"""
    if not isinstance(flags, int) or flags <= 0:
        return None
    for bit, name in OLD_CATEGORY_FLAGS:
        if flags & bit:
            return get_category_index(categories, name)
    return None


def get_category_by_implementation(thread: Thread, frame_index: int) -> ImplementationCategory:
    """根据帧的实现方式（解释器/baseline/ion/原生）确定分类"""
    func_index = thread.frame_table.func[frame_index]
    if not thread.func_table.is_js[func_index]:
        name = 'Platform'
    else:
        implementation_index = thread.frame_table.implementation[frame_index]
        implementation = (thread.string_table.get_string(implementation_index)
                          if implementation_index is not None else None)
        if implementation == 'baseline':
            name = 'JS Baseline'
        elif implementation == 'ion':
            name = 'JS Ion'
        else:
            name = 'JS Interpreter'
    return ImplementationCategory(name=name, color=IMPLEMENTATION_CATEGORY_MAP[name])
