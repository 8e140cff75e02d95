# -*- coding: utf-8 -*-
"""
符号服务接口

符号服务以库标识（debugName + breakpadId）和库内相对地址为输入，
返回地址到符号名的映射。结果可以是部分的，请求也可以按库失败。
"""

import abc
import bisect
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union
import logging

from ..errors import SymbolProviderError
from ..models import Lib

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryIdentity:
    """符号服务用来定位符号文件的库标识"""
    debug_name: str
    breakpad_id: str

    @classmethod
    def from_lib(cls, lib: Lib) -> 'LibraryIdentity':
        return cls(debug_name=lib.debug_name, breakpad_id=lib.breakpad_id)


class SymbolProvider(abc.ABC):
    """异步符号服务"""

    @abc.abstractmethod
    async def request_symbols(self, library: LibraryIdentity, addresses: List[int]) -> Dict[int, str]:
        """
        解析一个库中的地址

        Args:
            library: 库标识
            addresses: 库内相对地址（升序）

        Returns:
            Dict[int, str]: 已解析的地址到符号名，未解析的地址不出现在结果中

        Raises:
            SymbolProviderError: 该库的符号无法获取
        """


class SymbolTableProvider(SymbolProvider):
    """
    基于内存符号表的符号服务

    每个库的符号表是 (起始地址, 符号名) 列表，地址落在某个符号起始地址与下一个符号起始地址之间时
    解析为该符号。符号表的键可以是 "debugName" 或 "debugName/breakpadId"。
    """

    def __init__(self, symbol_tables: Dict[str, List[Tuple[int, str]]]):
        self._tables: Dict[str, Tuple[List[int], List[str]]] = {}
        for key, symbols in symbol_tables.items():
            ordered = sorted(symbols)
            self._tables[key] = ([address for address, _ in ordered], [name for _, name in ordered])

    def _find_table(self, library: LibraryIdentity) -> Optional[Tuple[List[int], List[str]]]:
        table = self._tables.get(f"{library.debug_name}/{library.breakpad_id}")
        if table is None:
            table = self._tables.get(library.debug_name)
        return table

    async def request_symbols(self, library: LibraryIdentity, addresses: List[int]) -> Dict[int, str]:
        table = self._find_table(library)
        if table is None:
            raise SymbolProviderError(library.debug_name, library.breakpad_id,
                                      KeyError(f"没有 {library.debug_name} 的符号表"))
        starts, names = table
        result = {}
        for address in addresses:
            position = bisect.bisect_right(starts, address) - 1
            if position >= 0:
                result[address] = names[position]
        logger.debug(f"{library.debug_name}: 解析 {len(result)}/{len(addresses)} 个地址")
        return result

    @classmethod
    def from_json_file(cls, file_path: Union[str, Path]) -> 'SymbolTableProvider':
        """
        从 JSON 文件加载符号表

        文件格式: {"libxul.so": {"0x1000": "main", "8192": "foo"}}，地址可以是十六进制或十进制字符串
        """
        file_path = Path(file_path)
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        symbol_tables = {}
        for key, symbols in data.items():
            symbol_tables[key] = [(int(address, 0), name) for address, name in symbols.items()]
        logger.info(f"从 {file_path} 加载了 {len(symbol_tables)} 个库的符号表")
        return cls(symbol_tables)
