# -*- coding: utf-8 -*-
"""
处理后 profile 的序列化与反序列化

线程的字符串表保存为 stringArray。可以选择对采样和计数器的时间戳做差分编码，
此时 time 列被替换为 timeDeltas 列。
"""

import copy
import json
from typing import Any, Dict, Union
import logging

from .errors import UnrecognizedFormatError
from .models import (
    Counter, CounterSamplesTable, FrameTable, FuncTable, Lib, MarkersTable, Profile,
    ResourceTable, SamplesTable, StackTable, StringTable, Thread, table_from_dict, table_to_dict,
)
from .upgrade import upgrade_processed_profile
from .utils import compute_time_deltas, reconstruct_times

logger = logging.getLogger(__name__)


def _thread_to_dict(thread: Thread) -> Dict[str, Any]:
    return {
        'name': thread.name,
        'processType': thread.process_type,
        'pid': thread.pid,
        'tid': thread.tid,
        'registerTime': thread.register_time,
        'unregisterTime': thread.unregister_time,
        'processStartupTime': thread.process_startup_time,
        'processShutdownTime': thread.process_shutdown_time,
        'samples': table_to_dict(thread.samples),
        'markers': table_to_dict(thread.markers),
        'stackTable': table_to_dict(thread.stack_table),
        'frameTable': table_to_dict(thread.frame_table),
        'funcTable': table_to_dict(thread.func_table),
        'resourceTable': table_to_dict(thread.resource_table),
        'stringArray': thread.string_table.serialize_to_array(),
    }


def _thread_from_dict(data: Dict[str, Any]) -> Thread:
    return Thread(
        name=data.get('name', ''),
        process_type=data.get('processType', 'default'),
        pid=data.get('pid'),
        tid=data.get('tid'),
        register_time=data.get('registerTime', 0),
        unregister_time=data.get('unregisterTime'),
        process_startup_time=data.get('processStartupTime', 0),
        process_shutdown_time=data.get('processShutdownTime'),
        samples=table_from_dict(SamplesTable, data['samples']),
        markers=table_from_dict(MarkersTable, data['markers']),
        stack_table=table_from_dict(StackTable, data['stackTable']),
        frame_table=table_from_dict(FrameTable, data['frameTable']),
        func_table=table_from_dict(FuncTable, data['funcTable']),
        resource_table=table_from_dict(ResourceTable, data['resourceTable']),
        string_table=StringTable.from_array(data.get('stringArray', [])),
    )


def _counter_to_dict(counter: Counter) -> Dict[str, Any]:
    return {
        'name': counter.name,
        'category': counter.category,
        'description': counter.description,
        'pid': counter.pid,
        'mainThreadIndex': counter.main_thread_index,
        'relative': counter.relative,
        'samples': table_to_dict(counter.samples),
    }


def _counter_from_dict(data: Dict[str, Any]) -> Counter:
    return Counter(
        name=data.get('name', ''),
        category=data.get('category', ''),
        description=data.get('description', ''),
        pid=data.get('pid'),
        main_thread_index=data.get('mainThreadIndex'),
        relative=bool(data.get('relative', False)),
        samples=table_from_dict(CounterSamplesTable, data.get('samples', {})),
    )


def profile_to_dict(profile: Profile) -> Dict[str, Any]:
    """把 Profile 转换为当前版本的处理后格式字典"""
    return {
        'meta': copy.deepcopy(profile.meta),
        'libs': [lib.to_dict() for lib in profile.libs],
        'threads': [_thread_to_dict(thread) for thread in profile.threads],
        'counters': [_counter_to_dict(counter) for counter in profile.counters],
    }


def profile_from_dict(data: Dict[str, Any]) -> Profile:
    """从当前版本的处理后格式字典构建 Profile"""
    return Profile(
        meta=copy.deepcopy(data['meta']),
        libs=[Lib.from_dict(lib) for lib in data.get('libs', [])],
        threads=[_thread_from_dict(thread) for thread in data.get('threads', [])],
        counters=[_counter_from_dict(counter) for counter in data.get('counters', [])],
    )


def _encode_time_deltas(table: Dict[str, Any]) -> None:
    table['timeDeltas'] = compute_time_deltas(table.pop('time'))


def _decode_time_deltas(table: Dict[str, Any]) -> None:
    if 'timeDeltas' in table:
        table['time'] = reconstruct_times(table.pop('timeDeltas'))


def serialize_profile(profile: Profile, delta_encoding: bool = False) -> str:
    """
    序列化为 JSON 字符串

    Args:
        profile: 处理后的 profile
        delta_encoding: 采样和计数器的时间戳是否以差分形式保存

    Returns:
        str: JSON 字符串
    """
    data = profile_to_dict(profile)
    if delta_encoding:
        for thread in data['threads']:
            _encode_time_deltas(thread['samples'])
        for counter in data['counters']:
            _encode_time_deltas(counter['samples'])
    return json.dumps(data, ensure_ascii=False)


def decode_time_deltas(document: Dict[str, Any]) -> Dict[str, Any]:
    """把文档中差分编码的时间戳恢复为绝对时间（原地修改）"""
    for thread in document.get('threads', []):
        if isinstance(thread.get('samples'), dict):
            _decode_time_deltas(thread['samples'])
    for counter in document.get('counters', []):
        if isinstance(counter.get('samples'), dict):
            _decode_time_deltas(counter['samples'])
    return document


def unserialize_profile(data: Union[str, bytes, Dict[str, Any]]) -> Profile:
    """
    反序列化处理后格式的 profile，旧版本会先升级

    Args:
        data: JSON 字符串或已解码的字典

    Returns:
        Profile: 处理后的 profile
    """
    if isinstance(data, (str, bytes)):
        try:
            document = json.loads(data)
        except json.JSONDecodeError as e:
            raise UnrecognizedFormatError(f"JSON 解析失败: {e}") from e
    else:
        document = copy.deepcopy(data)
    if not isinstance(document, dict):
        raise UnrecognizedFormatError("处理后的 profile 必须是 JSON 对象")

    decode_time_deltas(document)
    upgraded = upgrade_processed_profile(document)
    logger.debug(f"反序列化 {len(upgraded.get('threads', []))} 个线程")
    return profile_from_dict(upgraded)
