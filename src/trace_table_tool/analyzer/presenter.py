# -*- coding: utf-8 -*-
"""
分析结果的展示与输出
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List
import logging

import pandas as pd

from ..config import ProcessingConfig

logger = logging.getLogger(__name__)

# Excel 工作表名称的长度上限
MAX_SHEET_NAME_LENGTH = 31
_INVALID_SHEET_CHARS_RE = re.compile(r'[\[\]:*?/\\]')


def _sheet_name(name: str, used: set) -> str:
    """生成合法且不重复的工作表名称"""
    base = _INVALID_SHEET_CHARS_RE.sub('_', name) or 'sheet'
    candidate = base[:MAX_SHEET_NAME_LENGTH]
    suffix = 1
    while candidate in used:
        tail = f"_{suffix}"
        candidate = base[:MAX_SHEET_NAME_LENGTH - len(tail)] + tail
        suffix += 1
    used.add(candidate)
    return candidate


def _generate_base_name(config: ProcessingConfig) -> str:
    parts = [config.label, 'calltree', config.implementation]
    if config.inverted:
        parts.append('inverted')
    return '_'.join(parts)


def _parse_output_formats(output_format: str) -> List[str]:
    return [fmt.strip().lower() for fmt in output_format.split(',') if fmt.strip()]


def _generate_output_files(summaries, counters: List[Dict[str, Any]], markers: List[Dict[str, Any]],
                           output_dir: str, base_name: str, output_formats: List[str]) -> List[Path]:
    """
    生成输出文件 (JSON、CSV 和 Excel)

    Excel 中每个线程一个工作表，另有计数器和标记工作表。

    Returns:
        List[Path]: 生成的文件路径列表
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    files = []

    if 'json' in output_formats:
        json_file = output_path / f"{base_name}.json"
        payload = {
            'threads': [
                {
                    'thread_index': summary.thread_index,
                    'name': summary.thread_name,
                    'error': summary.error,
                    'call_nodes': summary.rows,
                }
                for summary in summaries
            ],
            'counters': counters,
            'markers': markers,
        }
        with open(json_file, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        print(f"生成 JSON 文件: {json_file}")
        files.append(json_file)

    all_rows = [row for summary in summaries for row in summary.rows]
    if 'csv' in output_formats:
        csv_file = output_path / f"{base_name}.csv"
        pd.DataFrame(all_rows).to_csv(csv_file, index=False)
        print(f"生成 CSV 文件: {csv_file}")
        files.append(csv_file)

    if 'xlsx' in output_formats:
        excel_file = output_path / f"{base_name}.xlsx"
        used_names = set()
        with pd.ExcelWriter(excel_file, engine='openpyxl') as writer:
            for summary in summaries:
                sheet = _sheet_name(f"{summary.thread_index}_{summary.thread_name}", used_names)
                if summary.error:
                    df = pd.DataFrame([{'error': summary.error}])
                else:
                    df = pd.DataFrame(summary.rows)
                df.to_excel(writer, sheet_name=sheet, index=False)
            if counters:
                pd.DataFrame(counters).to_excel(writer, sheet_name=_sheet_name('counters', used_names), index=False)
            if markers:
                pd.DataFrame(markers).to_excel(writer, sheet_name=_sheet_name('markers', used_names), index=False)
        print(f"生成 Excel 文件: {excel_file}")
        files.append(excel_file)

    return files


def print_markdown_table(rows: List[Dict[str, Any]], title: str) -> None:
    """在stdout中以markdown格式打印表格"""
    if not rows:
        print(f"\n## {title}\n\n无数据可显示\n")
        return

    print(f"\n## {title}\n")
    columns = list(rows[0].keys())
    print("| " + " | ".join(columns) + " |")
    print("| " + " | ".join(["---"] * len(columns)) + " |")
    for row in rows:
        values = []
        for column in columns:
            value = row.get(column, "")
            if isinstance(value, float):
                if column.endswith('_ratio'):
                    values.append(f"{value:.2f}%")
                else:
                    values.append(f"{value:.2f}")
            else:
                values.append(str(value).replace('|', '\\|'))
        print("| " + " | ".join(values) + " |")
    print()


def present_profile_summary(summaries, counters: List[Dict[str, Any]], markers: List[Dict[str, Any]],
                            config: ProcessingConfig) -> List[Path]:
    """
    输出调用树汇总

    Args:
        summaries: 线程汇总列表
        counters: 计数器行
        markers: 标记行
        config: 处理配置（输出格式、目录、标签等）

    Returns:
        List[Path]: 生成的文件路径列表
    """
    print("生成调用树展示结果...")
    output_formats = _parse_output_formats(config.output_format)
    base_name = _generate_base_name(config)
    files = _generate_output_files(summaries, counters, markers, config.output_dir, base_name, output_formats)

    if config.print_markdown:
        for summary in summaries:
            title = f"{summary.thread_index}: {summary.thread_name}"
            if summary.error:
                print(f"\n## {title}\n\n{summary.error}\n")
                continue
            columns = ('depth', 'function', 'category', 'self', 'total', 'total_ratio')
            print_markdown_table([{column: row[column] for column in columns} for row in summary.rows], title)
    return files
