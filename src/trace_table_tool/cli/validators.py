# -*- coding: utf-8 -*-
"""
CLI验证器模块
"""

from typing import List, Optional

from ..config import IMPLEMENTATION_FILTERS

VALID_OUTPUT_FORMATS = ('json', 'csv', 'xlsx')


def validate_output_formats(output_format: str) -> List[str]:
    """
    验证输出格式组合

    Args:
        output_format: 逗号分隔的输出格式，如 "json,xlsx"

    Returns:
        List[str]: 验证后的格式列表

    Raises:
        ValueError: 如果格式为空、重复或不受支持
    """
    if not output_format or not output_format.strip():
        raise ValueError("输出格式不能为空")

    formats = [fmt.strip().lower() for fmt in output_format.split(',')]
    for fmt in formats:
        if not fmt:
            raise ValueError("输出格式不能为空字符串")
        if fmt not in VALID_OUTPUT_FORMATS:
            raise ValueError(f"不支持的输出格式: {fmt}。支持的格式: {', '.join(VALID_OUTPUT_FORMATS)}")

    if len(formats) != len(set(formats)):
        raise ValueError("输出格式不能重复")
    return formats


def validate_implementation(implementation: str) -> str:
    """验证实现过滤器名称"""
    if implementation not in IMPLEMENTATION_FILTERS:
        raise ValueError(
            f"不支持的实现过滤器: {implementation}。支持的过滤器: {', '.join(IMPLEMENTATION_FILTERS)}")
    return implementation


def validate_max_workers(max_workers: Optional[int]) -> Optional[int]:
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"并行进程数必须大于 0: {max_workers}")
    return max_workers
