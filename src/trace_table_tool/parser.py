# -*- coding: utf-8 -*-
"""
Profile 文件加载与格式分发
"""

import copy
import gzip
import json
from pathlib import Path
from typing import Any, Dict, Tuple, Union
import logging

from .builder import process_gecko_profile
from .errors import UnrecognizedFormatError
from .models import Profile
from .serializer import decode_time_deltas, profile_from_dict
from .upgrade import (
    convert_legacy_profile, is_legacy_format, upgrade_gecko_profile, upgrade_processed_profile,
)

logger = logging.getLogger(__name__)

GZIP_MAGIC = b'\x1f\x8b'

FORMAT_LEGACY = 'legacy'
FORMAT_PROCESSED = 'processed'
FORMAT_GECKO = 'gecko'


def decode_profile_data(data: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    把字符串、字节串（可以是 gzip 压缩的）或字典统一解码为字典

    Raises:
        UnrecognizedFormatError: 不是合法的 JSON 对象
    """
    if isinstance(data, dict):
        return data
    if isinstance(data, bytes):
        if data[:2] == GZIP_MAGIC:
            data = gzip.decompress(data)
        data = data.decode('utf-8')
    if not isinstance(data, str):
        raise UnrecognizedFormatError(f"不支持的输入类型: {type(data).__name__}")
    try:
        document = json.loads(data)
    except json.JSONDecodeError as e:
        raise UnrecognizedFormatError(f"JSON 解析失败: {e}") from e
    if not isinstance(document, dict):
        raise UnrecognizedFormatError("profile 必须是 JSON 对象")
    return document


def detect_format(document: Dict[str, Any]) -> str:
    """
    识别文档属于哪种格式

    Returns:
        str: 'legacy'、'processed' 或 'gecko'

    Raises:
        UnrecognizedFormatError: 三种格式都不匹配
    """
    if is_legacy_format(document):
        return FORMAT_LEGACY
    meta = document.get('meta')
    if not isinstance(meta, dict):
        raise UnrecognizedFormatError("缺少 meta 字段")
    if 'preprocessedProfileVersion' in meta:
        return FORMAT_PROCESSED
    threads = document.get('threads')
    if isinstance(threads, list) and threads and isinstance(threads[0], dict) and 'stringArray' in threads[0]:
        return FORMAT_PROCESSED
    if isinstance(meta.get('version'), int):
        return FORMAT_GECKO
    raise UnrecognizedFormatError("既不是原始采集格式，也不是处理后格式或旧版格式")


def upgrade_profile_document(document: Dict[str, Any]) -> Tuple[str, Dict[str, Any]]:
    """
    把任意格式的文档升级到其格式链的当前版本

    旧版格式先转换为处理后格式。

    Returns:
        Tuple[str, Dict[str, Any]]: (识别出的格式, 升级后的文档)
    """
    profile_format = detect_format(document)
    logger.info(f"识别到格式: {profile_format}")
    if profile_format == FORMAT_LEGACY:
        return profile_format, upgrade_processed_profile(convert_legacy_profile(document))
    if profile_format == FORMAT_PROCESSED:
        document = decode_time_deltas(copy.deepcopy(document))
        return profile_format, upgrade_processed_profile(document)
    return profile_format, upgrade_gecko_profile(document)


def unserialize_profile_of_arbitrary_format(data: Union[str, bytes, Dict[str, Any]]) -> Profile:
    """
    加载任意支持格式的 profile

    任何一步失败都会放弃整个 profile，不返回部分结果。

    Raises:
        UnrecognizedFormatError: 无法识别的格式
        FutureVersionError: 版本过新
    """
    document = decode_profile_data(data)
    profile_format, upgraded = upgrade_profile_document(document)
    if profile_format == FORMAT_GECKO:
        return process_gecko_profile(upgraded)
    return profile_from_dict(upgraded)


def load_profile_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """读取 .json 或 .json.gz 文件并解码为字典"""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"文件不存在: {file_path}")
    logger.info(f"正在加载文件: {file_path}")
    return decode_profile_data(file_path.read_bytes())


def parse_profile_file(file_path: Union[str, Path]) -> Profile:
    """
    加载并处理一个 profile 文件

    Args:
        file_path: 文件路径

    Returns:
        Profile: 处理后的 profile
    """
    profile = unserialize_profile_of_arbitrary_format(load_profile_file(file_path))
    logger.info(f"加载完成: {len(profile.threads)} 个线程")
    return profile
