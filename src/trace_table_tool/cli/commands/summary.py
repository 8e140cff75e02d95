"""
调用树汇总命令模块
"""

import dataclasses
import time

from ..file_utils import parse_file_paths, profile_stem
from ..validators import validate_implementation, validate_max_workers, validate_output_formats
from ...analyzer import analyze_profile_file
from ...config import ProcessingConfig
from ...errors import TraceTableError


class SummaryCommand:
    """汇总命令处理器：按线程输出调用树的 self/total 权重"""

    def run(self, args) -> int:
        print("=== 调用树汇总 ===")
        print(f"文件模式: {args.file}")
        print(f"标签: {args.label}")
        print(f"实现过滤: {args.implementation}")
        print(f"倒置调用树: {args.inverted}")
        print(f"打印markdown表格: {args.print_markdown}")
        print(f"输出格式: {args.output_format}")
        print(f"输出目录: {args.output_dir}")
        print()

        try:
            validate_output_formats(args.output_format)
            validate_implementation(args.implementation)
            validate_max_workers(args.max_workers)
        except ValueError as e:
            print(f"错误: 参数验证失败 - {e}")
            return 1

        try:
            file_paths = parse_file_paths(args.file)
        except ValueError as e:
            print(f"错误: 解析文件路径失败 - {e}")
            return 1
        print(f"找到 {len(file_paths)} 个文件")

        config = ProcessingConfig.from_args(args)
        start_time = time.time()
        generated_files = []
        failed = 0
        for file_path in file_paths:
            file_config = config
            if len(file_paths) > 1:
                file_config = dataclasses.replace(config, label=f"{config.label}_{profile_stem(file_path)}")
            try:
                _, files = analyze_profile_file(file_path, file_config)
            except (TraceTableError, OSError) as e:
                print(f"错误: 处理文件 {file_path} 失败 - {e}")
                failed += 1
                continue
            generated_files.extend(files)

        print(f"\n分析完成，总耗时: {time.time() - start_time:.2f} 秒")
        print("\n生成的文件:")
        for file_path in generated_files:
            print(f"  {file_path}")
        return 1 if failed == len(file_paths) else 0
