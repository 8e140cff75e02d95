# -*- coding: utf-8 -*-
"""
配置与常量
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

LOGGER_CONTENT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGGER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL_ENV = "TRACE_TABLE_TOOL_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"

DEFAULT_OUTPUT_FORMAT = "json,xlsx"
DEFAULT_OUTPUT_DIR = "."
DEFAULT_LABEL = "profile"

IMPLEMENTATION_FILTERS = ("combined", "js", "cpp")
DEFAULT_IMPLEMENTATION = "combined"

# 同时向符号服务发出的库请求数
SYMBOLICATION_MAX_CONCURRENCY = 4


def setup_logging(level: Optional[str] = None) -> None:
    """
    配置根日志输出

    Args:
        level: 日志级别名称，未指定时读取环境变量 TRACE_TABLE_TOOL_LOG_LEVEL
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV) or DEFAULT_LOG_LEVEL).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"不支持的日志级别: {level_name}")

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOGGER_CONTENT_FORMAT, LOGGER_TIME_FORMAT))
        root.addHandler(handler)
    root.setLevel(numeric_level)


@dataclass
class ProcessingConfig:
    """一次处理运行的参数，由命令行参数构建"""
    implementation: str = DEFAULT_IMPLEMENTATION
    inverted: bool = False
    delta_encoding: bool = False
    output_format: str = DEFAULT_OUTPUT_FORMAT
    output_dir: str = DEFAULT_OUTPUT_DIR
    label: str = DEFAULT_LABEL
    print_markdown: bool = False
    max_workers: Optional[int] = None
    symbols_file: Optional[str] = None

    @classmethod
    def from_args(cls, args) -> 'ProcessingConfig':
        """从 argparse 命名空间构建配置，缺失的参数使用默认值"""
        return cls(
            implementation=getattr(args, 'implementation', DEFAULT_IMPLEMENTATION),
            inverted=getattr(args, 'inverted', False),
            delta_encoding=getattr(args, 'delta_encoding', False),
            output_format=getattr(args, 'output_format', DEFAULT_OUTPUT_FORMAT),
            output_dir=getattr(args, 'output_dir', DEFAULT_OUTPUT_DIR),
            label=getattr(args, 'label', DEFAULT_LABEL),
            print_markdown=getattr(args, 'print_markdown', False),
            max_workers=getattr(args, 'max_workers', None),
            symbols_file=getattr(args, 'symbols', None),
        )
