"""
分析器模块
"""

from .main import ThreadSummary, analyze_profile_file, summarize_profile, load_and_symbolicate
from .presenter import present_profile_summary, print_markdown_table

__all__ = [
    'ThreadSummary',
    'analyze_profile_file',
    'summarize_profile',
    'load_and_symbolicate',
    'present_profile_summary',
    'print_markdown_table',
]
