# -*- coding: utf-8 -*-
"""
CLI模块 - 命令行接口
"""

from .main import main
from .commands import UpgradeCommand, ProcessCommand, SummaryCommand

__all__ = ['main', 'UpgradeCommand', 'ProcessCommand', 'SummaryCommand']
