# -*- coding: utf-8 -*-
"""
帧位置字符串解析，以及函数表/资源表的构建

位置字符串有三种形式:
- 原生地址: "0x7f12ab"，归属到包含该地址的库
- JS 函数: "name (url:line[:column])"，归属到 URL 或网站资源
- 其他标签: "nsThread::ProcessNextEvent"，没有资源
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse
import logging

from .models import FuncTable, Lib, ResourceTable, ResourceType, StringTable
from .profile_data import get_containing_library_index

logger = logging.getLogger(__name__)

_HEX_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]+$')
_JS_LOCATION_RE = re.compile(r'^(.*) \((.*?)(?::(\d+))?(?::(\d+))?\)$')
_URL_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')


def is_hex_address(name: str) -> bool:
    """名称是否是尚未符号化的十六进制地址"""
    return bool(_HEX_ADDRESS_RE.match(name))


@dataclass
class JsLocation:
    """解析后的 JS 位置"""
    func_name: str
    url: str
    line: Optional[int]
    column: Optional[int]


def parse_js_location(location: str) -> Optional[JsLocation]:
    """
    解析 "name (url:line:column)" 形式的位置

    Returns:
        Optional[JsLocation]: 括号中不是 URL 时返回 None
    """
    match = _JS_LOCATION_RE.match(location)
    if match is None:
        return None
    func_name, url, line, column = match.groups()
    if not _URL_SCHEME_RE.match(url):
        return None
    return JsLocation(
        func_name=func_name,
        url=url,
        line=int(line) if line is not None else None,
        column=int(column) if column is not None else None,
    )


class FuncTableBuilder:
    """
    按位置字符串增量构建 FuncTable 和 ResourceTable

    函数按 (名称, 资源) 去重，JS 函数还区分文件和行列号。
    """

    def __init__(self, string_table: StringTable, libs: List[Lib],
                 lib_indexes: Optional[List[int]] = None):
        """
        Args:
            string_table: 线程字符串表，新名称会追加到其中
            libs: 按 start 升序排列的库，用于地址查找
            lib_indexes: libs 中每个库写入 resourceTable.lib 的索引，默认为其位置
        """
        self.string_table = string_table
        self.func_table = FuncTable()
        self.resource_table = ResourceTable()
        self._libs = libs
        self._lib_indexes = lib_indexes if lib_indexes is not None else list(range(len(libs)))
        self._func_keys: Dict[tuple, int] = {}
        self._resource_keys: Dict[tuple, int] = {}

    def _add_resource(self, key: tuple, name: str, resource_type: int,
                      lib: Optional[int] = None, host: Optional[str] = None) -> int:
        index = self._resource_keys.get(key)
        if index is not None:
            return index
        table = self.resource_table
        index = table.length
        table.lib.append(lib)
        table.name.append(self.string_table.index_for_string(name))
        table.host.append(self.string_table.index_for_string(host) if host is not None else None)
        table.type.append(resource_type)
        self._resource_keys[key] = index
        return index

    def _add_func(self, key: tuple, name: str, is_js: bool, resource: int,
                  relevant_for_js: bool = False, file_name: Optional[str] = None,
                  line_number: Optional[int] = None, column_number: Optional[int] = None,
                  address: int = -1) -> int:
        index = self._func_keys.get(key)
        if index is not None:
            if relevant_for_js:
                self.func_table.relevant_for_js[index] = True
            return index
        table = self.func_table
        index = table.length
        table.name.append(self.string_table.index_for_string(name))
        table.is_js.append(is_js)
        table.relevant_for_js.append(relevant_for_js)
        table.resource.append(resource)
        table.file_name.append(self.string_table.index_for_string(file_name) if file_name is not None else None)
        table.line_number.append(line_number)
        table.column_number.append(column_number)
        table.address.append(address)
        self._func_keys[key] = index
        return index

    def _library_resource(self, position: int) -> int:
        lib = self._libs[position]
        lib_index = self._lib_indexes[position]
        return self._add_resource(('lib', lib_index), lib.name, ResourceType.library, lib=lib_index)

    def _url_resource(self, url: str) -> int:
        parsed = urlparse(url)
        if parsed.scheme in ('http', 'https') and parsed.netloc:
            host = f"{parsed.scheme}://{parsed.netloc}"
            return self._add_resource(('host', host), parsed.netloc, ResourceType.webhost, host=host)
        return self._add_resource(('url', url), url, ResourceType.url)

    def add_location(self, location: str, relevant_for_js: bool = False) -> Tuple[int, int]:
        """
        解析一个位置字符串并返回对应的函数

        Returns:
            Tuple[int, int]: (函数索引, 帧地址)；非原生帧的地址为 -1
        """
        if is_hex_address(location):
            address = int(location, 16)
            position = get_containing_library_index(self._libs, address)
            if position < 0:
                logger.debug(f"地址 {location} 不属于任何库")
                func = self._add_func(('label', location, -1), location, False, -1, relevant_for_js)
                return func, -1
            resource = self._library_resource(position)
            relative_address = address - self._libs[position].start
            func = self._add_func(('native', location, resource), location, False, resource,
                                  relevant_for_js, address=relative_address)
            return func, relative_address

        js_location = parse_js_location(location)
        if js_location is not None:
            resource = self._url_resource(js_location.url)
            key = ('js', js_location.func_name, resource, js_location.url,
                   js_location.line, js_location.column)
            func = self._add_func(key, js_location.func_name, True, resource, relevant_for_js,
                                  file_name=js_location.url, line_number=js_location.line,
                                  column_number=js_location.column)
            return func, -1

        func = self._add_func(('label', location, -1), location, False, -1, relevant_for_js)
        return func, -1
