# -*- coding: utf-8 -*-
"""
旧版（无版本号）profile 格式转换

旧格式把采样保存为帧列表，帧可以是符号表的键、位置字符串或带 location 的对象。
转换结果是版本 0 的处理后格式，之后交给处理后格式的升级链。
"""

import copy
from typing import Any, Dict, List, Optional, Tuple
import logging

from ..models import StringTable

logger = logging.getLogger(__name__)

LEGACY_FORMAT_TAG = 'profileJSONWithSymbolicationTable,1'
DEFAULT_LEGACY_THREAD_NAME = 'GeckoMain'


def is_legacy_format(document: Any) -> bool:
    """
    判断文档是否是旧版格式：没有任何版本号，并且带有旧格式特有的字段
    """
    if not isinstance(document, dict):
        return False
    meta = document.get('meta')
    if isinstance(meta, dict) and ('version' in meta or 'preprocessedProfileVersion' in meta):
        return False
    if document.get('format') == LEGACY_FORMAT_TAG:
        return True
    return 'profileJSON' in document and 'symbolicationTable' in document


def _resolve_frame(frame: Any, symbolication_table: Dict[str, str]) -> Optional[str]:
    if isinstance(frame, dict):
        frame = frame.get('location')
    if frame is None:
        return None
    key = str(frame)
    return symbolication_table.get(key, key)


class _LegacyThreadConverter:
    """把一个旧版线程的采样列表转换为列式表"""

    def __init__(self, symbolication_table: Dict[str, str]):
        self.symbolication_table = symbolication_table
        self.string_table = StringTable()
        self.frame_location: List[int] = []
        self.frame_line: List[Optional[int]] = []
        self.stack_frame: List[int] = []
        self.stack_prefix: List[Optional[int]] = []
        self._frame_keys: Dict[Tuple[str, Optional[int]], int] = {}
        self._stack_keys: Dict[Tuple[Optional[int], int], int] = {}

    def _frame_index(self, location: str, line: Optional[int]) -> int:
        key = (location, line)
        index = self._frame_keys.get(key)
        if index is None:
            index = len(self.frame_location)
            self.frame_location.append(self.string_table.index_for_string(location))
            self.frame_line.append(line)
            self._frame_keys[key] = index
        return index

    def _stack_index(self, prefix: Optional[int], frame: int) -> int:
        key = (prefix, frame)
        index = self._stack_keys.get(key)
        if index is None:
            index = len(self.stack_frame)
            self.stack_frame.append(frame)
            self.stack_prefix.append(prefix)
            self._stack_keys[key] = index
        return index

    def add_frames(self, frames: List[Any]) -> Optional[int]:
        """按根到叶的顺序插入帧链，返回叶子栈索引"""
        stack = None
        for frame in frames:
            location = _resolve_frame(frame, self.symbolication_table)
            if location is None:
                continue
            line = frame.get('line') if isinstance(frame, dict) else None
            stack = self._stack_index(stack, self._frame_index(location, line))
        return stack

    def convert(self, name: str, samples: List[Dict[str, Any]],
                markers: List[Dict[str, Any]]) -> Dict[str, Any]:
        sample_stacks, sample_times, sample_responsiveness = [], [], []
        for sample in samples:
            extra_info = sample.get('extraInfo') or {}
            sample_stacks.append(self.add_frames(sample.get('frames', [])))
            sample_times.append(sample.get('time', extra_info.get('time')))
            sample_responsiveness.append(sample.get('responsiveness', extra_info.get('responsiveness')))

        marker_names, marker_times, marker_data = [], [], []
        for marker in markers:
            marker_names.append(self.string_table.index_for_string(marker.get('name', '')))
            marker_times.append(marker.get('time'))
            marker_data.append(marker.get('data'))

        return {
            'name': name,
            'processType': 'default',
            'libs': [],
            'samples': {
                'stack': sample_stacks,
                'time': sample_times,
                'responsiveness': sample_responsiveness,
                'length': len(sample_stacks),
            },
            'markers': {
                'name': marker_names,
                'time': marker_times,
                'data': marker_data,
                'length': len(marker_names),
            },
            'stackTable': {
                'frame': self.stack_frame,
                'prefix': self.stack_prefix,
                'length': len(self.stack_frame),
            },
            'frameTable': {
                'location': self.frame_location,
                'implementation': [None] * len(self.frame_location),
                'line': self.frame_line,
                'length': len(self.frame_location),
            },
            'stringArray': self.string_table.serialize_to_array(),
        }


def _legacy_threads(profile_json: Any) -> List[Tuple[str, Dict[str, Any]]]:
    """返回 (线程名, 线程数据) 列表，兼容列表、字典和只有采样列表的最早格式"""
    if isinstance(profile_json, list):
        return [(DEFAULT_LEGACY_THREAD_NAME, {'samples': profile_json, 'markers': []})]
    threads = profile_json.get('threads', [])
    if isinstance(threads, dict):
        threads = [threads[key] for key in sorted(threads, key=str)]
    result = []
    for index, thread in enumerate(threads):
        default_name = DEFAULT_LEGACY_THREAD_NAME if index == 0 else f"Thread {index}"
        result.append((thread.get('name', default_name), thread))
    return result


def convert_legacy_profile(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    把旧版格式转换为版本 0 的处理后格式

    Args:
        document: 已通过 is_legacy_format 检查的文档

    Returns:
        Dict[str, Any]: 处理后格式（preprocessedProfileVersion 为 0）的文档
    """
    profile_json = document.get('profileJSON', document)
    symbolication_table = {str(key): value for key, value in (document.get('symbolicationTable') or {}).items()}

    meta_source = document.get('meta')
    if not isinstance(meta_source, dict) and isinstance(profile_json, dict):
        meta_source = profile_json.get('meta')
    meta = copy.deepcopy(meta_source) if isinstance(meta_source, dict) else {}
    meta.setdefault('interval', 1)
    meta.setdefault('startTime', 0)
    meta['preprocessedProfileVersion'] = 0

    threads = []
    for name, thread in _legacy_threads(profile_json):
        converter = _LegacyThreadConverter(symbolication_table)
        threads.append(converter.convert(name, thread.get('samples', []), thread.get('markers', [])))

    logger.info(f"旧版格式转换完成，共 {len(threads)} 个线程")
    return {'meta': meta, 'threads': threads}
