"""
通用工具模块
"""

from .data_table import sort_data_table
from .time import compute_time_deltas, reconstruct_times, shift_times

__all__ = ['sort_data_table', 'compute_time_deltas', 'reconstruct_times', 'shift_times']
