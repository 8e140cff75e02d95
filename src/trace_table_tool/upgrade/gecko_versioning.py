# -*- coding: utf-8 -*-
"""
原始采集（gecko）格式的升级链

版本号存放在 meta.version。子进程的采集以完整文档的形式嵌套在 processes 中，
每一步都会递归作用到子进程上。
"""

import json
from typing import Any, Dict, Iterator, List
import logging

from ..categories import category_from_flags, default_categories, get_category_index, DEFAULT_CATEGORY_NAME
from ..markers import marker_timing_from_payload
from .common import upgrade_lib_list
from .pipeline import upgrade_document

logger = logging.getLogger(__name__)

CURRENT_GECKO_VERSION = 13
GECKO_FORMAT_NAME = "gecko profile"


def _iter_profiles(profile: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """依次产出文档自身和所有已解析的子进程文档"""
    yield profile
    for subprocess_profile in profile.get('processes', []):
        if isinstance(subprocess_profile, dict):
            yield from _iter_profiles(subprocess_profile)


def _iter_threads(profile: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    for process_profile in _iter_profiles(profile):
        for thread in process_profile.get('threads', []):
            yield thread


def _objects_to_table(objects: List[Dict[str, Any]], columns: List[str]) -> Dict[str, Any]:
    schema = {column: index for index, column in enumerate(columns)}
    data = [[item.get(column) for column in columns] for item in objects]
    return {'schema': schema, 'data': data}


def _pad_row(row: List[Any], width: int) -> List[Any]:
    if len(row) < width:
        return list(row) + [None] * (width - len(row))
    return list(row)


def _rename_schema_key(schema: Dict[str, int], old: str, new: str) -> Dict[str, int]:
    return {(new if key == old else key): index for key, index in schema.items()}


def _upgrade_1_parse_processes(profile: Dict[str, Any]) -> None:
    """子进程曾经以 JSON 字符串的形式保存"""
    for process_profile in _iter_profiles(profile):
        if 'processes' in process_profile:
            process_profile['processes'] = [
                json.loads(item) if isinstance(item, str) else item
                for item in process_profile['processes']
            ]


def _upgrade_2_parse_libs(profile: Dict[str, Any]) -> None:
    for process_profile in _iter_profiles(profile):
        libs = process_profile.get('libs')
        if isinstance(libs, str):
            process_profile['libs'] = json.loads(libs)
        elif libs is None:
            process_profile['libs'] = []


def _upgrade_3_tables_with_schema(profile: Dict[str, Any]) -> None:
    """采样和标记从对象列表转换为 {schema, data} 表，标记名进入线程字符串表"""
    for thread in _iter_threads(profile):
        samples = thread.get('samples', [])
        if isinstance(samples, list):
            thread['samples'] = _objects_to_table(
                samples, ['stack', 'time', 'responsiveness', 'frameNumber'])

        markers = thread.get('markers', [])
        if isinstance(markers, list):
            string_table = thread.setdefault('stringTable', [])
            string_index = {string: index for index, string in enumerate(string_table)}
            data = []
            for marker in markers:
                name = marker.get('name', '')
                if name not in string_index:
                    string_index[name] = len(string_table)
                    string_table.append(name)
                data.append([string_index[name], marker.get('time'), marker.get('data')])
            thread['markers'] = {'schema': {'name': 0, 'time': 1, 'data': 2}, 'data': data}


def _upgrade_4_drop_frame_number(profile: Dict[str, Any]) -> None:
    for thread in _iter_threads(profile):
        samples = thread['samples']
        schema = samples['schema']
        if 'frameNumber' not in schema:
            continue
        kept = [key for key in sorted(schema, key=schema.get) if key != 'frameNumber']
        width = max(schema.values()) + 1
        samples['data'] = [
            [padded[schema[key]] for key in kept]
            for padded in (_pad_row(row, width) for row in samples['data'])
        ]
        samples['schema'] = {key: index for index, key in enumerate(kept)}


def _upgrade_5_lib_fields(profile: Dict[str, Any]) -> None:
    for process_profile in _iter_profiles(profile):
        process_profile['libs'] = upgrade_lib_list(process_profile.get('libs', []))


def _upgrade_6_categories(profile: Dict[str, Any]) -> None:
    """帧的 category 从位标志改为分类索引，同时增加 subcategory 列"""
    for process_profile in _iter_profiles(profile):
        meta = process_profile.setdefault('meta', {})
        if not meta.get('categories'):
            meta['categories'] = default_categories()
        categories = meta['categories']

        for thread in process_profile.get('threads', []):
            frame_table = thread['frameTable']
            schema = frame_table['schema']
            category_column = schema.get('category')
            subcategory_column = len(schema)
            width = subcategory_column + 1
            new_data = []
            for row in frame_table['data']:
                row = _pad_row(row, width)
                category = None
                if category_column is not None:
                    category = category_from_flags(categories, row[category_column])
                    row[category_column] = category
                row[subcategory_column] = 0 if category is not None else None
                new_data.append(row)
            frame_table['data'] = new_data
            frame_table['schema'] = dict(schema, subcategory=subcategory_column)


def _upgrade_7_event_delay(profile: Dict[str, Any]) -> None:
    for thread in _iter_threads(profile):
        samples = thread['samples']
        samples['schema'] = _rename_schema_key(samples['schema'], 'responsiveness', 'eventDelay')


def _upgrade_8_marker_phases(profile: Dict[str, Any]) -> None:
    """标记的单一 time 字段拆分为 startTime/endTime/phase"""
    for thread in _iter_threads(profile):
        markers = thread['markers']
        schema = markers['schema']
        width = max(schema.values()) + 1 if schema else 0
        data = []
        for row in markers['data']:
            row = _pad_row(row, width)
            payload = row[schema['data']] if 'data' in schema else None
            start, end, phase = marker_timing_from_payload(row[schema['time']], payload)
            data.append([row[schema['name']], start, end, phase, payload])
        markers['schema'] = {'name': 0, 'startTime': 1, 'endTime': 2, 'phase': 3, 'data': 4}
        markers['data'] = data


def _upgrade_9_counter_samples(profile: Dict[str, Any]) -> None:
    for process_profile in _iter_profiles(profile):
        for counter in process_profile.get('counters', []):
            if 'sample_groups' in counter:
                groups = counter.pop('sample_groups')
                if isinstance(groups, dict):
                    groups = [groups]
                if groups:
                    counter['samples'] = groups[0]['samples']
                else:
                    counter['samples'] = {'schema': {'time': 0, 'number': 1, 'count': 2}, 'data': []}
            counter.setdefault('relative', counter.get('category') == 'Memory')


def _upgrade_10_marker_category(profile: Dict[str, Any]) -> None:
    """标记表增加 category 列，值取自负载中的分类名称"""
    for process_profile in _iter_profiles(profile):
        meta = process_profile['meta']
        meta.setdefault('markerSchema', [])
        categories = meta['categories']
        for thread in process_profile.get('threads', []):
            markers = thread['markers']
            data = []
            for name, start, end, phase, payload in markers['data']:
                category_name = DEFAULT_CATEGORY_NAME
                if isinstance(payload, dict) and isinstance(payload.get('category'), str):
                    category_name = payload['category']
                category = get_category_index(categories, category_name)
                data.append([name, start, end, phase, category, payload])
            markers['schema'] = {
                'name': 0, 'startTime': 1, 'endTime': 2, 'phase': 3, 'category': 4, 'data': 5,
            }
            markers['data'] = data


def _upgrade_11_thread_lifetimes(profile: Dict[str, Any]) -> None:
    for process_profile in _iter_profiles(profile):
        process_profile['meta'].setdefault('shutdownTime', None)
        for thread in process_profile.get('threads', []):
            thread.setdefault('registerTime', 0)
            thread.setdefault('unregisterTime', None)


def _upgrade_12_frame_columns(profile: Dict[str, Any]) -> None:
    """帧表增加 relevantForJS/innerWindowID/column 三列"""
    for thread in _iter_threads(profile):
        frame_table = thread['frameTable']
        schema = dict(frame_table['schema'])
        width = len(schema)
        additions = [('relevantForJS', False), ('innerWindowID', 0), ('column', None)]
        for offset, (key, _) in enumerate(additions):
            schema[key] = width + offset
        frame_table['data'] = [
            _pad_row(row, width) + [value for _, value in additions]
            for row in frame_table['data']
        ]
        frame_table['schema'] = schema


_UPGRADERS = {
    1: _upgrade_1_parse_processes,
    2: _upgrade_2_parse_libs,
    3: _upgrade_3_tables_with_schema,
    4: _upgrade_4_drop_frame_number,
    5: _upgrade_5_lib_fields,
    6: _upgrade_6_categories,
    7: _upgrade_7_event_delay,
    8: _upgrade_8_marker_phases,
    9: _upgrade_9_counter_samples,
    10: _upgrade_10_marker_category,
    11: _upgrade_11_thread_lifetimes,
    12: _upgrade_12_frame_columns,
}


def get_gecko_version(profile: Dict[str, Any]) -> Any:
    meta = profile.get('meta')
    if not isinstance(meta, dict):
        return None
    return meta.get('version')


def _set_gecko_version(profile: Dict[str, Any], version: int) -> None:
    for process_profile in _iter_profiles(profile):
        process_profile.setdefault('meta', {})['version'] = version


def upgrade_gecko_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    """
    把 gecko 原始采集升级到 CURRENT_GECKO_VERSION

    Raises:
        FutureVersionError: 版本高于当前支持的版本
        UnrecognizedFormatError: 缺少 meta.version
    """
    return upgrade_document(
        profile,
        _UPGRADERS,
        CURRENT_GECKO_VERSION,
        get_gecko_version,
        _set_gecko_version,
        GECKO_FORMAT_NAME,
    )
