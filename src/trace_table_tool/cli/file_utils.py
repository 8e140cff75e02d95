"""
文件处理工具模块
"""

import glob
import os
from pathlib import Path
from typing import List

PROFILE_SUFFIXES = ('.json', '.json.gz')


def _is_profile_file(file_path: str) -> bool:
    return file_path.lower().endswith(PROFILE_SUFFIXES)


def parse_file_paths(file_pattern: str) -> List[str]:
    """
    解析文件路径，支持 glob 模式

    Args:
        file_pattern: 文件路径模式，支持 glob 通配符

    Returns:
        List[str]: 匹配的 profile 文件路径列表（.json 或 .json.gz）
    """
    if '*' in file_pattern or '?' in file_pattern or '[' in file_pattern:
        matched_files = glob.glob(file_pattern)
        if not matched_files:
            raise ValueError(f"glob 模式 {file_pattern} 没有匹配到任何文件")

        profile_files = [f for f in matched_files if _is_profile_file(f)]
        if not profile_files:
            raise ValueError(f"glob 模式 {file_pattern} 没有匹配到任何 JSON 文件")
        return sorted(profile_files)

    if not os.path.exists(file_pattern):
        raise ValueError(f"文件不存在: {file_pattern}")
    if not _is_profile_file(file_pattern):
        raise ValueError(f"文件不是 JSON 格式: {file_pattern}")
    return [file_pattern]


def profile_stem(file_path: str) -> str:
    """去掉 .json / .json.gz 后缀的文件名"""
    name = Path(file_path).name
    for suffix in sorted(PROFILE_SUFFIXES, key=len, reverse=True):
        if name.lower().endswith(suffix):
            return name[:-len(suffix)]
    return Path(file_path).stem


def default_output_path(file_path: str, suffix: str, output_dir: str = None) -> Path:
    """生成默认输出路径: <目录>/<文件名>.<suffix>.json"""
    directory = Path(output_dir) if output_dir else Path(file_path).parent
    return directory / f"{profile_stem(file_path)}.{suffix}.json"
