"""
升级命令模块
"""

import json

from ..file_utils import default_output_path
from ...errors import TraceTableError
from ...parser import load_profile_file, upgrade_profile_document
from ...upgrade import get_gecko_version, get_processed_version


class UpgradeCommand:
    """升级命令处理器：把文档升级到所属格式链的当前版本，不做表格构建"""

    def run(self, args) -> int:
        print("=== 格式升级 ===")
        print(f"输入文件: {args.file}")

        try:
            document = load_profile_file(args.file)
            profile_format, upgraded = upgrade_profile_document(document)
        except (TraceTableError, OSError) as e:
            print(f"错误: {e}")
            return 1

        if profile_format == 'gecko':
            version = get_gecko_version(upgraded)
        else:
            version = get_processed_version(upgraded)
        print(f"识别格式: {profile_format}")
        print(f"升级后版本: {version}")

        output_path = default_output_path(args.file, 'upgraded') if not args.output else args.output
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(upgraded, f, ensure_ascii=False, indent=args.indent)
        except OSError as e:
            print(f"错误: 写入文件失败 - {e}")
            return 1
        print(f"生成文件: {output_path}")
        return 0
