"""
CLI主模块
"""

import argparse
import sys

from ..config import DEFAULT_IMPLEMENTATION, DEFAULT_LABEL, DEFAULT_OUTPUT_DIR, DEFAULT_OUTPUT_FORMAT, \
    IMPLEMENTATION_FILTERS, setup_logging
from .commands import ProcessCommand, SummaryCommand, UpgradeCommand


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器"""
    parser = argparse.ArgumentParser(
        description="Trace Table Tool - 性能采集文件的格式升级、表格构建与调用树分析",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
示例用法:
  # 把任意历史版本的文件升级到当前版本（不构建表格）
  trace-table-tool upgrade capture.json --output capture.upgraded.json

  # 加载任意格式并输出当前版本的处理后格式
  trace-table-tool process capture.json.gz --output processed.json

  # 处理时使用符号表文件进行符号化，并对时间戳做差分编码
  trace-table-tool process capture.json --symbols symbols.json --delta-encoding

  # 按线程输出调用树汇总
  trace-table-tool summary capture.json --label baseline --output-format json,xlsx

  # 只看 JS 帧的倒置调用树，并在stdout中打印markdown表格
  trace-table-tool summary capture.json --implementation js --inverted --print-markdown

  # 批量处理目录下的文件
  trace-table-tool summary "captures/*.json" --max-workers 4 --output-dir results
        """
    )
    parser.add_argument('--log-level', default=None,
                        help='日志级别 (DEBUG, INFO, WARNING, ERROR)，默认读取环境变量 TRACE_TABLE_TOOL_LOG_LEVEL')

    subparsers = parser.add_subparsers(dest='command', help='可用命令')

    upgrade_parser = subparsers.add_parser('upgrade', help='把文件升级到所属格式的当前版本')
    upgrade_parser.add_argument('file', help='输入文件 (.json 或 .json.gz)')
    upgrade_parser.add_argument('--output', default=None, help='输出文件路径 (默认: <输入文件名>.upgraded.json)')
    upgrade_parser.add_argument('--indent', type=int, default=None, help='JSON 缩进 (默认: 不缩进)')

    process_parser = subparsers.add_parser('process', help='加载任意格式并输出处理后格式')
    process_parser.add_argument('file', help='输入文件 (.json 或 .json.gz)')
    process_parser.add_argument('--output', default=None, help='输出文件路径 (默认: <输入文件名>.processed.json)')
    process_parser.add_argument('--symbols', default=None, help='符号表 JSON 文件，用于符号化原生地址')
    process_parser.add_argument('--delta-encoding', action='store_true',
                                help='采样和计数器的时间戳以差分形式保存 (默认: False)')

    summary_parser = subparsers.add_parser('summary', help='按线程输出调用树汇总')
    summary_parser.add_argument('file', help='输入文件路径，支持 glob 模式 (如: "*.json" 或 "dir/*.json")')
    summary_parser.add_argument('--label', default=DEFAULT_LABEL, help=f'输出文件标签 (默认: {DEFAULT_LABEL})')
    summary_parser.add_argument('--implementation', default=DEFAULT_IMPLEMENTATION, choices=IMPLEMENTATION_FILTERS,
                                help=f'按实现方式过滤帧 (默认: {DEFAULT_IMPLEMENTATION})')
    summary_parser.add_argument('--inverted', action='store_true', help='使用倒置调用树 (默认: False)')
    summary_parser.add_argument('--symbols', default=None, help='符号表 JSON 文件，用于符号化原生地址')
    summary_parser.add_argument('--print-markdown', action='store_true',
                                help='是否在stdout中以markdown格式打印表格 (默认: False)')
    summary_parser.add_argument('--output-format', default=DEFAULT_OUTPUT_FORMAT,
                                help=f'输出格式，逗号分隔，可选 json, csv, xlsx (默认: {DEFAULT_OUTPUT_FORMAT})')
    summary_parser.add_argument('--output-dir', default=DEFAULT_OUTPUT_DIR, help='输出目录 (默认: 当前目录)')
    summary_parser.add_argument('--max-workers', type=int, default=None,
                                help='按线程并行处理的最大工作进程数，默认为CPU核心数')
    return parser


def parse_arguments(argv=None):
    """解析命令行参数"""
    return build_parser().parse_args(argv)


def main(argv=None):
    """主函数"""
    args = parse_arguments(argv)
    try:
        setup_logging(args.log_level)
    except ValueError as e:
        print(f"错误: {e}")
        return 1

    if not args.command:
        print("错误: 请指定命令 (upgrade, process, summary)")
        print("使用 --help 查看帮助信息")
        return 1

    if args.command == 'upgrade':
        command = UpgradeCommand()
    elif args.command == 'process':
        command = ProcessCommand()
    elif args.command == 'summary':
        command = SummaryCommand()
    else:
        print(f"错误: 未知命令: {args.command}")
        return 1
    return command.run(args)


if __name__ == "__main__":
    sys.exit(main())
