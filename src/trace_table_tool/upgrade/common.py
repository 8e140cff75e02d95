# -*- coding: utf-8 -*-
"""
两条升级链共用的转换
"""

from typing import Any, Dict, List, Optional


def _breakpad_id_from_pdb(signature: Optional[str], age: Any) -> str:
    if not signature:
        return ''
    cleaned = signature.replace('{', '').replace('}', '').replace('-', '').upper()
    if isinstance(age, int):
        cleaned += format(age, 'X')
    return cleaned


def upgrade_lib_fields(lib: Dict[str, Any]) -> Dict[str, Any]:
    """
    旧版库描述（pdbName/pdbSignature/pdbAge）转换为 debugName/debugPath/breakpadId

    Returns:
        Dict[str, Any]: 新的库字典
    """
    breakpad_id = lib.get('breakpadId')
    if breakpad_id:
        breakpad_id = breakpad_id.upper()
    else:
        breakpad_id = _breakpad_id_from_pdb(lib.get('pdbSignature'), lib.get('pdbAge'))
    name = lib.get('name', '')
    path = lib.get('path', '')
    return {
        'start': lib.get('start', 0),
        'end': lib.get('end', 0),
        'offset': lib.get('offset', 0),
        'arch': lib.get('arch', ''),
        'name': name,
        'path': path,
        'debugName': lib.get('debugName') or lib.get('pdbName') or name,
        'debugPath': lib.get('debugPath') or path,
        'breakpadId': breakpad_id,
    }


def upgrade_lib_list(libs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [upgrade_lib_fields(lib) for lib in libs]
