# -*- coding: utf-8 -*-
"""
错误类型定义

- UnrecognizedFormatError: 输入既不是原始采集格式、也不是处理后格式或旧格式
- FutureVersionError: 文档版本高于当前支持的版本
- CorruptStackTableError: 栈表存在环或悬空引用，只影响对应线程
- SymbolProviderError: 单个库的符号化失败，不影响其他库
"""

from typing import Optional


class TraceTableError(Exception):
    """所有处理错误的基类"""


class UnrecognizedFormatError(TraceTableError):
    """无法识别的 profile 格式"""

    def __init__(self, message: str = "无法识别的 profile 格式"):
        super().__init__(message)


class FutureVersionError(TraceTableError):
    """文档版本比当前读取器支持的版本更新"""

    def __init__(self, version: int, current_version: int, format_name: str):
        self.version = version
        self.current_version = current_version
        self.format_name = format_name
        super().__init__(
            f"{format_name} 版本 {version} 高于当前支持的版本 {current_version}，请升级读取器"
        )


class CorruptStackTableError(TraceTableError):
    """栈表结构损坏（环形前缀链或悬空引用）"""

    def __init__(self, stack_index: int, thread_index: Optional[int] = None,
                 reason: str = "前缀链存在环"):
        self.stack_index = stack_index
        self.thread_index = thread_index
        self.reason = reason
        location = f"线程 {thread_index} " if thread_index is not None else ""
        super().__init__(f"{location}栈 {stack_index} 损坏: {reason}")


class SymbolProviderError(TraceTableError):
    """符号服务对某个库的请求失败"""

    def __init__(self, debug_name: str, breakpad_id: str, cause: Optional[BaseException] = None):
        self.debug_name = debug_name
        self.breakpad_id = breakpad_id
        self.cause = cause
        message = f"库 {debug_name} ({breakpad_id}) 符号化失败"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
