"""
符号化模块

- provider: 符号服务接口和基于符号表的实现
- merging: 合并解析为同一符号的函数
- session: 异步符号化及其在 ProfileStore 上的原子应用
"""

from .provider import LibraryIdentity, SymbolProvider, SymbolTableProvider
from .merging import (
    apply_function_merging, apply_symbolication_batch, collect_library_addresses,
    compute_func_merge_map, remap_call_node_path, set_func_names,
)
from .session import (
    CallNodePathSelection, SymbolicationBatch, SymbolicationSession, run_symbolication, symbolicate_profile,
)

__all__ = [
    'LibraryIdentity',
    'SymbolProvider',
    'SymbolTableProvider',
    'apply_function_merging',
    'apply_symbolication_batch',
    'collect_library_addresses',
    'compute_func_merge_map',
    'remap_call_node_path',
    'set_func_names',
    'CallNodePathSelection',
    'SymbolicationBatch',
    'SymbolicationSession',
    'symbolicate_profile',
    'run_symbolication',
]
