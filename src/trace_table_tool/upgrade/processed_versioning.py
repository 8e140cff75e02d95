# -*- coding: utf-8 -*-
"""
处理后（processed）格式的升级链

版本号存放在 meta.preprocessedProfileVersion，缺失时视为版本 0。
线程的表都是列式字典，字符串存放在线程的 stringArray 中。
"""

from typing import Any, Dict, Iterator, List, Tuple
import logging

from ..categories import default_categories, get_category_index, DEFAULT_CATEGORY_NAME, JS_CATEGORY_NAME
from ..locations import FuncTableBuilder, is_hex_address
from ..markers import marker_timing_from_payload
from ..models import Lib, StringTable, table_to_dict
from .common import upgrade_lib_list
from .pipeline import upgrade_document

logger = logging.getLogger(__name__)

CURRENT_PROCESSED_VERSION = 13
PROCESSED_FORMAT_NAME = "processed profile"


def _threads(profile: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    yield from profile.get('threads', [])


def _table_length(table: Dict[str, Any], column: str) -> int:
    length = table.get('length')
    if isinstance(length, int):
        return length
    return len(table.get(column, []))


def _upgrade_0_func_table(profile: Dict[str, Any]) -> None:
    """frameTable.location 拆分为 funcTable、resourceTable 和 frameTable.func/address"""
    for thread in _threads(profile):
        thread['libs'] = sorted(thread.get('libs', []), key=lambda lib: lib.get('start', 0))
        libs = [Lib.from_dict(lib) for lib in thread['libs']]
        string_table = StringTable.from_array(thread.get('stringArray', []))
        builder = FuncTableBuilder(string_table, libs)

        frame_table = thread['frameTable']
        locations = frame_table.pop('location', [])
        funcs = []
        addresses = []
        for location_index in locations:
            func, address = builder.add_location(string_table.get_string(location_index))
            funcs.append(func)
            addresses.append(address)
        frame_table['func'] = funcs
        frame_table['address'] = addresses
        frame_table['length'] = len(funcs)

        func_table = table_to_dict(builder.func_table)
        for key in ('relevantForJS', 'columnNumber'):
            func_table.pop(key)
        thread['funcTable'] = func_table
        thread['resourceTable'] = table_to_dict(builder.resource_table)
        thread['stringArray'] = string_table.serialize_to_array()


def _upgrade_1_lib_fields(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        thread['libs'] = upgrade_lib_list(thread.get('libs', []))


def _upgrade_2_categories(profile: Dict[str, Any]) -> None:
    """增加默认分类，JS 帧归入 JavaScript，其余归入 Other"""
    meta = profile.setdefault('meta', {})
    if not meta.get('categories'):
        meta['categories'] = default_categories()
    categories = meta['categories']
    js_category = get_category_index(categories, JS_CATEGORY_NAME)
    other_category = get_category_index(categories, DEFAULT_CATEGORY_NAME)

    for thread in _threads(profile):
        frame_table = thread['frameTable']
        is_js = thread['funcTable']['isJS']
        frame_categories = [js_category if is_js[func] else other_category for func in frame_table['func']]
        frame_table['category'] = frame_categories
        frame_table['subcategory'] = [0] * len(frame_categories)

        stack_table = thread['stackTable']
        stack_table['category'] = [frame_categories[frame] for frame in stack_table['frame']]
        stack_table['subcategory'] = [0] * len(stack_table['frame'])


def _upgrade_3_marker_phases(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        markers = thread['markers']
        times = markers.pop('time', [])
        data = markers.get('data', [None] * len(times))
        starts, ends, phases = [], [], []
        for time, payload in zip(times, data):
            start, end, phase = marker_timing_from_payload(time, payload)
            starts.append(start)
            ends.append(end)
            phases.append(phase)
        markers['startTime'] = starts
        markers['endTime'] = ends
        markers['phase'] = phases


def _upgrade_4_event_delay(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        samples = thread['samples']
        length = _table_length(samples, 'time')
        samples['eventDelay'] = samples.pop('responsiveness', [None] * length)


def _upgrade_5_hoist_libs(profile: Dict[str, Any]) -> None:
    """线程级的库列表去重后提升到 profile.libs，resourceTable.lib 改为全局索引"""
    profile_libs: List[Dict[str, Any]] = []
    lib_keys: Dict[Tuple[str, str], int] = {}
    for thread in _threads(profile):
        local_to_global = []
        for lib in thread.pop('libs', []):
            key = (lib.get('debugName', ''), lib.get('breakpadId', ''))
            if key not in lib_keys:
                lib_keys[key] = len(profile_libs)
                profile_libs.append(lib)
            local_to_global.append(lib_keys[key])
        resource_table = thread['resourceTable']
        resource_table['lib'] = [
            local_to_global[lib] if lib is not None and 0 <= lib < len(local_to_global) else None
            for lib in resource_table.get('lib', [])
        ]
    logger.debug(f"库列表提升到 profile 级别，共 {len(profile_libs)} 个")
    profile['libs'] = profile_libs


def _upgrade_6_sample_weights(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        samples = thread['samples']
        samples.setdefault('weight', None)
        samples.setdefault('weightType', 'samples')


def _upgrade_7_js_columns(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        func_table = thread['funcTable']
        func_count = _table_length(func_table, 'name')
        func_table.setdefault('relevantForJS', [False] * func_count)
        func_table.setdefault('columnNumber', [None] * func_count)

        frame_table = thread['frameTable']
        frame_count = _table_length(frame_table, 'func')
        frame_table.setdefault('column', [None] * frame_count)
        frame_table.setdefault('innerWindowID', [0] * frame_count)


def _upgrade_8_counter_samples(profile: Dict[str, Any]) -> None:
    for counter in profile.get('counters', []):
        if 'sampleGroups' in counter:
            groups = counter.pop('sampleGroups')
            if groups:
                counter['samples'] = groups[0]['samples']
            else:
                counter['samples'] = {'time': [], 'count': [], 'number': [], 'length': 0}
        counter.setdefault('relative', counter.get('category') == 'Memory')


def _upgrade_9_symbolicated_flag(profile: Dict[str, Any]) -> None:
    """未声明 symbolicated 时，按函数名中是否还有十六进制地址推断"""
    meta = profile.setdefault('meta', {})
    if 'symbolicated' in meta:
        return
    symbolicated = True
    for thread in _threads(profile):
        strings = thread.get('stringArray', [])
        if any(is_hex_address(strings[name]) for name in thread['funcTable']['name']):
            symbolicated = False
            break
    meta['symbolicated'] = symbolicated


def _upgrade_10_thread_lifetimes(profile: Dict[str, Any]) -> None:
    for thread in _threads(profile):
        thread.setdefault('processStartupTime', 0)
        thread.setdefault('processShutdownTime', None)
        thread.setdefault('registerTime', 0)
        thread.setdefault('unregisterTime', None)


def _upgrade_11_marker_category(profile: Dict[str, Any]) -> None:
    other_category = get_category_index(profile['meta']['categories'], DEFAULT_CATEGORY_NAME)
    for thread in _threads(profile):
        markers = thread['markers']
        length = _table_length(markers, 'name')
        markers.setdefault('category', [other_category] * length)


def _upgrade_12_marker_schema(profile: Dict[str, Any]) -> None:
    profile['meta'].setdefault('markerSchema', [])


_UPGRADERS = {
    0: _upgrade_0_func_table,
    1: _upgrade_1_lib_fields,
    2: _upgrade_2_categories,
    3: _upgrade_3_marker_phases,
    4: _upgrade_4_event_delay,
    5: _upgrade_5_hoist_libs,
    6: _upgrade_6_sample_weights,
    7: _upgrade_7_js_columns,
    8: _upgrade_8_counter_samples,
    9: _upgrade_9_symbolicated_flag,
    10: _upgrade_10_thread_lifetimes,
    11: _upgrade_11_marker_category,
    12: _upgrade_12_marker_schema,
}


def get_processed_version(profile: Dict[str, Any]) -> Any:
    meta = profile.get('meta')
    if not isinstance(meta, dict):
        return None
    return meta.get('preprocessedProfileVersion', 0)


def _set_processed_version(profile: Dict[str, Any], version: int) -> None:
    profile['meta']['preprocessedProfileVersion'] = version


def upgrade_processed_profile(profile: Dict[str, Any]) -> Dict[str, Any]:
    """
    把处理后的 profile 文档升级到 CURRENT_PROCESSED_VERSION

    Raises:
        FutureVersionError: 版本高于当前支持的版本
        UnrecognizedFormatError: 缺少 meta 或版本号无效
    """
    return upgrade_document(
        profile,
        _UPGRADERS,
        CURRENT_PROCESSED_VERSION,
        get_processed_version,
        _set_processed_version,
        PROCESSED_FORMAT_NAME,
    )
