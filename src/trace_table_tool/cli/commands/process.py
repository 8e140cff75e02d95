"""
处理命令模块
"""

import time
from pathlib import Path

from ..file_utils import default_output_path
from ...analyzer import load_and_symbolicate
from ...errors import TraceTableError
from ...serializer import serialize_profile


class ProcessCommand:
    """处理命令处理器：加载任意格式并输出当前版本的处理后格式"""

    def run(self, args) -> int:
        print("=== Profile 处理 ===")
        print(f"输入文件: {args.file}")
        print(f"符号表: {args.symbols if args.symbols else '无'}")
        print(f"时间戳差分编码: {args.delta_encoding}")
        print()

        start_time = time.time()
        try:
            profile = load_and_symbolicate(args.file, args.symbols)
        except (TraceTableError, OSError, ValueError) as e:
            print(f"错误: {e}")
            return 1

        print(f"线程数: {len(profile.threads)}")
        print(f"库数量: {len(profile.libs)}")
        print(f"计数器数: {len(profile.counters)}")

        output_path = Path(args.output) if args.output else default_output_path(args.file, 'processed')
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(serialize_profile(profile, args.delta_encoding), encoding='utf-8')

        print(f"\n处理完成，总耗时: {time.time() - start_time:.2f} 秒")
        print(f"生成文件: {output_path}")
        return 0
