# -*- coding: utf-8 -*-
"""
Profile 数据模型定义

所有线程级的表都是列式的：每个字段是一个等长的列表，行号就是实体的标识。
表之间只通过整数索引互相引用，字符串统一存放在 StringTable 中。
"""

from dataclasses import dataclass, field, fields
from typing import Dict, List, Any, Optional


class ResourceType:
    """resourceTable.type 的取值"""
    unknown = 0
    library = 1
    addon = 2
    webhost = 3
    otherhost = 4
    url = 5


class MarkerPhase:
    """markers.phase 的取值"""
    instant = 0
    interval = 1
    interval_start = 2
    interval_end = 3


class StringTable:
    """
    字符串去重表

    只增不减，已分配的索引在表的生命周期内保持不变。
    """

    def __init__(self, strings: Optional[List[str]] = None):
        self._array: List[str] = []
        self._index: Dict[str, int] = {}
        for string in strings or []:
            # 保留原有位置，即使输入中存在重复字符串
            self._index.setdefault(string, len(self._array))
            self._array.append(string)

    def get_string(self, index: int) -> str:
        """根据索引获取字符串"""
        if index < 0 or index >= len(self._array):
            raise IndexError(f"字符串索引越界: {index}")
        return self._array[index]

    def has_string(self, string: str) -> bool:
        return string in self._index

    def index_for_string(self, string: str) -> int:
        """获取字符串的索引，不存在时追加到表尾"""
        index = self._index.get(string)
        if index is None:
            index = len(self._array)
            self._array.append(string)
            self._index[string] = index
        return index

    def serialize_to_array(self) -> List[str]:
        return list(self._array)

    @classmethod
    def from_array(cls, strings: List[str]) -> 'StringTable':
        return cls(strings)

    def __len__(self) -> int:
        return len(self._array)

    def __eq__(self, other) -> bool:
        if not isinstance(other, StringTable):
            return NotImplemented
        return self._array == other._array

    def __repr__(self) -> str:
        return f"StringTable({len(self._array)} strings)"


def _column(key: str):
    return field(default_factory=list, metadata={'key': key})


class ColumnarTable:
    """列式表的公共行为"""

    _LENGTH_COLUMN = ''

    @property
    def length(self) -> int:
        return len(getattr(self, self._LENGTH_COLUMN))


@dataclass
class FuncTable(ColumnarTable):
    """函数表：按 (name, resource) 去重，符号化之后可能进一步合并"""
    name: List[int] = _column('name')
    is_js: List[bool] = _column('isJS')
    relevant_for_js: List[bool] = _column('relevantForJS')
    resource: List[int] = _column('resource')
    file_name: List[Optional[int]] = _column('fileName')
    line_number: List[Optional[int]] = _column('lineNumber')
    column_number: List[Optional[int]] = _column('columnNumber')
    address: List[int] = _column('address')

    _LENGTH_COLUMN = 'name'


@dataclass
class FrameTable(ColumnarTable):
    """帧表：函数在某个地址/行号上的一次具体出现"""
    address: List[int] = _column('address')
    category: List[Optional[int]] = _column('category')
    subcategory: List[Optional[int]] = _column('subcategory')
    func: List[int] = _column('func')
    implementation: List[Optional[int]] = _column('implementation')
    line: List[Optional[int]] = _column('line')
    column: List[Optional[int]] = _column('column')
    inner_window_id: List[int] = _column('innerWindowID')

    _LENGTH_COLUMN = 'func'


@dataclass
class ResourceTable(ColumnarTable):
    """资源表：库、URL、插件等"""
    lib: List[Optional[int]] = _column('lib')
    name: List[int] = _column('name')
    host: List[Optional[int]] = _column('host')
    type: List[int] = _column('type')

    _LENGTH_COLUMN = 'name'


@dataclass
class StackTable(ColumnarTable):
    """栈表：帧链组成的前缀树，行顺序为首次出现的顺序"""
    frame: List[int] = _column('frame')
    prefix: List[Optional[int]] = _column('prefix')
    category: List[int] = _column('category')
    subcategory: List[int] = _column('subcategory')

    _LENGTH_COLUMN = 'frame'


@dataclass
class SamplesTable(ColumnarTable):
    """采样表"""
    stack: List[Optional[int]] = _column('stack')
    time: List[float] = _column('time')
    event_delay: List[Optional[float]] = _column('eventDelay')
    weight: Optional[List[float]] = field(default=None, metadata={'key': 'weight', 'optional': True})
    weight_type: str = field(default='samples', metadata={'key': 'weightType', 'scalar': True})

    _LENGTH_COLUMN = 'time'


@dataclass
class MarkersTable(ColumnarTable):
    """标记表"""
    data: List[Optional[Dict[str, Any]]] = _column('data')
    name: List[int] = _column('name')
    start_time: List[Optional[float]] = _column('startTime')
    end_time: List[Optional[float]] = _column('endTime')
    phase: List[int] = _column('phase')
    category: List[int] = _column('category')

    _LENGTH_COLUMN = 'name'


@dataclass
class CounterSamplesTable(ColumnarTable):
    """计数器采样表"""
    time: List[float] = _column('time')
    count: List[float] = _column('count')
    number: List[Optional[int]] = _column('number')

    _LENGTH_COLUMN = 'time'


def table_to_dict(table: ColumnarTable) -> Dict[str, Any]:
    """把列式表转换为 JSON 兼容的字典（camelCase 键）"""
    result = {}
    for table_field in fields(table):
        value = getattr(table, table_field.name)
        result[table_field.metadata['key']] = list(value) if isinstance(value, list) else value
    result['length'] = table.length
    return result


def table_from_dict(table_class, data: Dict[str, Any]):
    """从字典构建列式表，缺失的列用 None 填充"""
    length = data.get('length')
    kwargs = {}
    for table_field in fields(table_class):
        key = table_field.metadata['key']
        if key in data:
            value = data[key]
            kwargs[table_field.name] = list(value) if isinstance(value, list) else value
        elif table_field.metadata.get('optional') or table_field.metadata.get('scalar'):
            continue
        else:
            kwargs[table_field.name] = [None] * (length or 0)
    return table_class(**kwargs)


@dataclass
class Lib:
    """加载到进程中的库"""
    start: int
    end: int
    offset: int = 0
    arch: str = ''
    name: str = ''
    path: str = ''
    debug_name: str = ''
    debug_path: str = ''
    breakpad_id: str = ''

    @property
    def identity_key(self) -> tuple:
        """库的去重键"""
        return (self.debug_name, self.breakpad_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start,
            'end': self.end,
            'offset': self.offset,
            'arch': self.arch,
            'name': self.name,
            'path': self.path,
            'debugName': self.debug_name,
            'debugPath': self.debug_path,
            'breakpadId': self.breakpad_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Lib':
        """从字典构建，兼容旧版字段名（pdbName）"""
        name = data.get('name', '')
        return cls(
            start=data.get('start', 0),
            end=data.get('end', 0),
            offset=data.get('offset', 0),
            arch=data.get('arch', ''),
            name=name,
            path=data.get('path', ''),
            debug_name=data.get('debugName') or data.get('pdbName') or name,
            debug_path=data.get('debugPath') or data.get('path', ''),
            breakpad_id=data.get('breakpadId', ''),
        )


@dataclass
class Counter:
    """计数器（内存、带宽等）"""
    name: str
    category: str
    description: str = ''
    pid: Optional[Any] = None
    main_thread_index: Optional[int] = None
    relative: bool = False
    samples: CounterSamplesTable = field(default_factory=CounterSamplesTable)


@dataclass
class Thread:
    """单个线程的全部表"""
    name: str
    process_type: str = 'default'
    pid: Optional[Any] = None
    tid: Optional[Any] = None
    register_time: float = 0
    unregister_time: Optional[float] = None
    process_startup_time: float = 0
    process_shutdown_time: Optional[float] = None
    samples: SamplesTable = field(default_factory=SamplesTable)
    markers: MarkersTable = field(default_factory=MarkersTable)
    stack_table: StackTable = field(default_factory=StackTable)
    frame_table: FrameTable = field(default_factory=FrameTable)
    func_table: FuncTable = field(default_factory=FuncTable)
    resource_table: ResourceTable = field(default_factory=ResourceTable)
    string_table: StringTable = field(default_factory=StringTable)

    def get_func_name(self, func_index: int) -> str:
        """获取函数名"""
        return self.string_table.get_string(self.func_table.name[func_index])

    def get_frame_func_name(self, frame_index: int) -> str:
        """获取帧对应的函数名"""
        return self.get_func_name(self.frame_table.func[frame_index])


@dataclass
class Profile:
    """处理后的完整 profile（一次采集）"""
    meta: Dict[str, Any]
    libs: List[Lib] = field(default_factory=list)
    threads: List[Thread] = field(default_factory=list)
    counters: List[Counter] = field(default_factory=list)

    @property
    def categories(self) -> List[Dict[str, Any]]:
        return self.meta.get('categories', [])
