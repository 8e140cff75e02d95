# -*- coding: utf-8 -*-
"""
版本升级流水线

每条格式链是一张 {源版本: 升级函数} 的表，升级函数把文档从版本 v 原地改写为 v+1。
运行器负责按顺序执行并在每一步之后回写版本号。
"""

import copy
from typing import Any, Callable, Dict
import logging

from ..errors import FutureVersionError, UnrecognizedFormatError

logger = logging.getLogger(__name__)

Upgrader = Callable[[Dict[str, Any]], None]


def upgrade_document(document: Dict[str, Any],
                     upgraders: Dict[int, Upgrader],
                     current_version: int,
                     get_version: Callable[[Dict[str, Any]], Any],
                     set_version: Callable[[Dict[str, Any], int], None],
                     format_name: str) -> Dict[str, Any]:
    """
    把文档逐版本升级到 current_version

    Args:
        document: 已解码的 JSON 文档，不会被修改
        upgraders: 源版本到升级函数的映射
        current_version: 目标版本
        get_version: 读取文档版本号
        set_version: 回写文档版本号
        format_name: 用于错误信息的格式名称

    Returns:
        Dict[str, Any]: 升级后的文档；已经是当前版本时原样返回

    Raises:
        UnrecognizedFormatError: 版本号缺失或无法解析，或升级表中缺少某一步
        FutureVersionError: 文档版本高于 current_version
    """
    version = get_version(document)
    if not isinstance(version, int) or isinstance(version, bool) or version < 0:
        raise UnrecognizedFormatError(f"{format_name} 文档的版本号无效: {version!r}")
    if version > current_version:
        raise FutureVersionError(version, current_version, format_name)
    if version == current_version:
        return document

    upgraded = copy.deepcopy(document)
    logger.info(f"{format_name} 文档从版本 {version} 升级到 {current_version}")
    for source_version in range(version, current_version):
        upgrader = upgraders.get(source_version)
        if upgrader is None:
            raise UnrecognizedFormatError(
                f"{format_name} 缺少从版本 {source_version} 升级的步骤"
            )
        upgrader(upgraded)
        set_version(upgraded, source_version + 1)
        logger.debug(f"{format_name}: {source_version} -> {source_version + 1}")
    return upgraded
