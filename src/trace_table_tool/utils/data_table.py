"""
列式表工具
"""

from dataclasses import fields
from typing import Any, Callable, List, Optional


def sort_data_table(table, key_column: List[Any], key: Optional[Callable[[Any], Any]] = None):
    """
    按某一列对列式表的所有列做同样的重排（稳定排序，原地修改）

    Args:
        table: 列式表（dataclass，列为 list）
        key_column: 用于排序的列，可以是表自身的列，也可以是等长的外部列表
        key: 作用在 key_column 元素上的排序键函数

    Returns:
        排序后的同一个表
    """
    length = len(key_column)
    key_func = key if key is not None else (lambda value: value)
    order = sorted(range(length), key=lambda index: key_func(key_column[index]))
    if order == list(range(length)):
        return table

    for table_field in fields(table):
        column = getattr(table, table_field.name)
        if isinstance(column, list) and len(column) == length:
            column[:] = [column[index] for index in order]

    if not any(key_column is getattr(table, table_field.name) for table_field in fields(table)):
        key_column[:] = [key_column[index] for index in order]
    return table
