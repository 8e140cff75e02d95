"""
CLI命令模块
"""

from .upgrade import UpgradeCommand
from .process import ProcessCommand
from .summary import SummaryCommand

__all__ = ['UpgradeCommand', 'ProcessCommand', 'SummaryCommand']
