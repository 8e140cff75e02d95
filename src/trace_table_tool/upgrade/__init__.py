"""
格式升级模块

两条互不相干的升级链（原始采集、处理后格式）以及旧版格式的转换。
"""

from .pipeline import upgrade_document
from .gecko_versioning import CURRENT_GECKO_VERSION, upgrade_gecko_profile, get_gecko_version
from .processed_versioning import CURRENT_PROCESSED_VERSION, upgrade_processed_profile, get_processed_version
from .legacy_format import is_legacy_format, convert_legacy_profile

__all__ = [
    'upgrade_document',
    'CURRENT_GECKO_VERSION',
    'upgrade_gecko_profile',
    'get_gecko_version',
    'CURRENT_PROCESSED_VERSION',
    'upgrade_processed_profile',
    'get_processed_version',
    'is_legacy_format',
    'convert_legacy_profile',
]
