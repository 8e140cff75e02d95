"""
测试用的 profile 构造函数

每个函数都返回新对象，测试之间互不影响。
"""

import json
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trace_table_tool.categories import default_categories
from trace_table_tool.models import (
    FrameTable, FuncTable, Profile, ResourceTable, SamplesTable, StackTable, StringTable, Thread,
)

XUL_DEBUG_NAME = 'xul.pdb'
XUL_BREAKPAD_ID = 'ABCD12340000111122223333444455552'
LIBC_DEBUG_NAME = 'libc.so'

FRAME_SCHEMA_V1 = {'location': 0, 'implementation': 1, 'optimizations': 2, 'line': 3, 'category': 4}
STACK_SCHEMA = {'prefix': 0, 'frame': 1}

# 旧版帧分类位标志
OTHER_FLAG = 1 << 4
JS_FLAG = 1 << 6


def _libxul(start, end):
    return {
        'start': start,
        'end': end,
        'offset': 0,
        'name': 'libxul.so',
        'path': '/opt/firefox/libxul.so',
        'pdbName': XUL_DEBUG_NAME,
        'pdbSignature': '{ABCD1234-0000-1111-2222-333344445555}',
        'pdbAge': 2,
    }


def _libc():
    return {
        'start': 0x6000,
        'end': 0x7000,
        'offset': 0,
        'name': 'libc.so',
        'path': '/lib/libc.so',
        'breakpadId': 'c0ffee0',
    }


def _main_thread_v1():
    return {
        'name': 'GeckoMain',
        'processType': 'default',
        'pid': 100,
        'tid': 100,
        'stringTable': [
            '(root)', '0x1100', '0x1200', 'js::RunScript',
            'onLoad (https://example.com/app.js:10:5)', 'ion',
        ],
        'frameTable': {
            'schema': dict(FRAME_SCHEMA_V1),
            'data': [
                [0, None, None, None, OTHER_FLAG],
                [1, None, None, None, None],
                [2, None, None, None, None],
                [3, None, None, None, JS_FLAG],
                [4, 5, None, 10, JS_FLAG],
            ],
        },
        'stackTable': {
            'schema': dict(STACK_SCHEMA),
            'data': [[None, 0], [0, 1], [1, 2], [0, 3], [3, 4]],
        },
        'samples': [
            {'stack': 2, 'time': 0.0, 'responsiveness': 0.5, 'frameNumber': 1},
            {'stack': 2, 'time': 1.0, 'responsiveness': 1.5, 'frameNumber': 2},
            {'stack': 4, 'time': 2.0, 'responsiveness': 0.0, 'frameNumber': 3},
            {'stack': 1, 'time': 3.0, 'responsiveness': 0.0, 'frameNumber': 4},
        ],
        'markers': [
            {'name': 'Paint', 'time': 0.5,
             'data': {'type': 'tracing', 'interval': 'start', 'category': 'Graphics'}},
            {'name': 'Paint', 'time': 2.5,
             'data': {'type': 'tracing', 'interval': 'end', 'category': 'Graphics'}},
            {'name': 'DOMEvent', 'time': 1.5,
             'data': {'type': 'DOMEvent', 'startTime': 1.0, 'endTime': 1.5}},
        ],
    }


def _compositor_thread_v1():
    return {
        'name': 'Compositor',
        'processType': 'default',
        'pid': 100,
        'tid': 101,
        'stringTable': ['(root)', '0x6010'],
        'frameTable': {
            'schema': dict(FRAME_SCHEMA_V1),
            'data': [[0, None, None, None, OTHER_FLAG], [1, None, None, None, None]],
        },
        'stackTable': {'schema': dict(STACK_SCHEMA), 'data': [[None, 0], [0, 1]]},
        'samples': [{'stack': 1, 'time': 0.5, 'responsiveness': 0.0}],
        'markers': [],
    }


def _content_thread_v1():
    return {
        'name': 'Content',
        'processType': 'tab',
        'pid': 200,
        'tid': 200,
        'stringTable': ['(root)', '0x8100'],
        'frameTable': {
            'schema': dict(FRAME_SCHEMA_V1),
            'data': [[0, None, None, None, OTHER_FLAG], [1, None, None, None, None]],
        },
        'stackTable': {'schema': dict(STACK_SCHEMA), 'data': [[None, 0], [0, 1]]},
        'samples': [
            {'stack': 1, 'time': 0.0, 'responsiveness': 0.0},
            {'stack': 1, 'time': 1.0, 'responsiveness': 0.0},
        ],
        'markers': [
            {'name': 'Styles', 'time': 2.0,
             'data': {'type': 'Styles', 'startTime': 2.0, 'endTime': 3.0}},
        ],
    }


def make_gecko_v1_profile():
    """
    版本 1 的 gecko 原始采集

    主进程有 GeckoMain 和 Compositor 两个线程；子进程以 JSON 字符串保存，
    其中的 Content 线程与主进程共享 libxul（加载地址不同）。
    """
    content_process = {
        'meta': {'version': 1, 'startTime': 1010, 'interval': 1},
        'libs': json.dumps([_libxul(0x8000, 0xC000)]),
        'threads': [_content_thread_v1()],
    }
    return {
        'meta': {'version': 1, 'startTime': 1000, 'interval': 1},
        'libs': json.dumps([_libc(), _libxul(0x1000, 0x5000)]),
        'threads': [_main_thread_v1(), _compositor_thread_v1()],
        'counters': [
            {
                'name': 'malloc',
                'category': 'Memory',
                'description': 'Amount of allocated memory',
                'sample_groups': [
                    {'id': 0, 'samples': {
                        'schema': {'time': 0, 'number': 1, 'count': 2},
                        'data': [[0.0, 0, 100], [1.0, 0, -20], [2.0, 0, 50]],
                    }},
                ],
            },
        ],
        'processes': [json.dumps(content_process)],
    }


def make_legacy_profile():
    """旧版无版本号的 profile：帧通过符号表引用"""
    return {
        'format': 'profileJSONWithSymbolicationTable,1',
        'meta': {'interval': 1, 'startTime': 0},
        'profileJSON': {
            'threads': {
                '0': {
                    'name': 'GeckoMain',
                    'samples': [
                        {'frames': ['(root)', 1, 2], 'time': 0.0, 'responsiveness': 0},
                        {'frames': ['(root)', 1, 2], 'time': 1.0, 'responsiveness': 0},
                        {'frames': ['(root)', 1, {'location': 'onClick (https://example.com/ui.js:3)', 'line': 3}],
                         'time': 2.0, 'responsiveness': 4},
                    ],
                    'markers': [{'name': 'Navigation', 'time': 0.5, 'data': None}],
                },
            },
        },
        'symbolicationTable': {'1': 'main', '2': 'doWork'},
    }


def make_call_tree_thread():
    """
    用于调用树测试的线程

    函数: 0 main, 1 render (JS), 2 layout, 3 paint (JS)
    帧:   0->main, 1->render, 2->layout, 3->render (另一行), 4->paint
    栈:   s0 main
          s1 main>render        s2 main>render>layout
          s3 main>render(帧3)   s4 main>render(帧3)>layout
          s5 main>paint         s6 paint（根）
    s1/s3 与 s2/s4 的函数序列相同，应归并为同一个调用节点。
    """
    string_table = StringTable(['main', 'render', 'layout', 'paint'])
    func_table = FuncTable(
        name=[0, 1, 2, 3],
        is_js=[False, True, False, True],
        relevant_for_js=[False, False, False, False],
        resource=[-1, -1, -1, -1],
        file_name=[None, None, None, None],
        line_number=[None, None, None, None],
        column_number=[None, None, None, None],
        address=[-1, -1, -1, -1],
    )
    frame_table = FrameTable(
        address=[-1] * 5,
        category=[1] * 5,
        subcategory=[0] * 5,
        func=[0, 1, 2, 1, 3],
        implementation=[None] * 5,
        line=[None, 10, None, 20, None],
        column=[None] * 5,
        inner_window_id=[0] * 5,
    )
    stack_table = StackTable(
        frame=[0, 1, 2, 3, 2, 4, 4],
        prefix=[None, 0, 1, 0, 3, 0, None],
        category=[1] * 7,
        subcategory=[0] * 7,
    )
    samples = SamplesTable(
        stack=[2, 4, 1, 5, 6, 6],
        time=[0.0, 1.0, 2.0, 3.0, 4.0, 5.0],
        event_delay=[0.0] * 6,
    )
    return Thread(
        name='GeckoMain',
        pid=1,
        tid=1,
        samples=samples,
        stack_table=stack_table,
        frame_table=frame_table,
        func_table=func_table,
        resource_table=ResourceTable(),
        string_table=string_table,
    )


def make_call_tree_profile():
    return Profile(
        meta={'categories': default_categories(), 'preprocessedProfileVersion': 13, 'symbolicated': True},
        threads=[make_call_tree_thread()],
    )


CALL_TREE_SELF_STACKS = [1, 2, 4, 5, 6]


def _processed_lib(start, debug_name, breakpad_id):
    return {
        'start': start, 'end': start + 0x1000, 'offset': 0, 'arch': 'x86_64',
        'name': debug_name, 'path': '/usr/lib/' + debug_name,
        'debugName': debug_name, 'debugPath': '/usr/lib/' + debug_name, 'breakpadId': breakpad_id,
    }


def _processed_v4_thread(name, libs, addresses):
    """
    版本 4 的处理后线程：库列表仍在线程里，resourceTable.lib 是线程内的库索引

    addresses 是 (线程内库索引, 相对地址) 列表，每个地址一个函数和一个资源，
    各帧依次构成一条调用链。
    """
    strings = [lib['name'] for lib in libs] + ['0x%x' % address for _, address in addresses]
    count = len(addresses)
    return {
        'name': name,
        'processType': 'default',
        'libs': libs,
        'resourceTable': {
            'lib': [lib for lib, _ in addresses],
            'name': [lib for lib, _ in addresses],
            'host': [None] * count,
            'type': [1] * count,
            'length': count,
        },
        'funcTable': {
            'name': [len(libs) + index for index in range(count)],
            'isJS': [False] * count,
            'resource': list(range(count)),
            'fileName': [None] * count,
            'lineNumber': [None] * count,
            'address': [address for _, address in addresses],
            'length': count,
        },
        'frameTable': {
            'func': list(range(count)),
            'address': [address for _, address in addresses],
            'category': [1] * count,
            'subcategory': [0] * count,
            'implementation': [None] * count,
            'line': [None] * count,
            'length': count,
        },
        'stackTable': {
            'frame': list(range(count)),
            'prefix': [None] + list(range(count - 1)),
            'category': [1] * count,
            'subcategory': [0] * count,
            'length': count,
        },
        'samples': {
            'stack': [count - 1, 0],
            'time': [0.0, 1.0],
            'responsiveness': [2.0, 0.0],
            'length': 2,
        },
        'markers': {
            'name': [], 'startTime': [], 'endTime': [], 'phase': [], 'data': [], 'length': 0,
        },
        'stringArray': strings,
    }


def make_processed_v4_profile():
    """
    版本 4 的处理后 profile，三个线程的库列表互相重叠

    GeckoMain: [xul, libc]，Compositor: [libc, libGL]，Content: [xul（加载地址不同）]
    """
    xul_id = XUL_BREAKPAD_ID
    libc_id = 'C0FFEE0'
    gl_id = 'FEEDBEEF1'
    return {
        'meta': {
            'interval': 1,
            'startTime': 1000,
            'preprocessedProfileVersion': 4,
            'categories': default_categories(),
        },
        'threads': [
            _processed_v4_thread('GeckoMain',
                                 [_processed_lib(0x1000, XUL_DEBUG_NAME, xul_id),
                                  _processed_lib(0x5000, LIBC_DEBUG_NAME, libc_id)],
                                 [(0, 0x10), (1, 0x20)]),
            _processed_v4_thread('Compositor',
                                 [_processed_lib(0x5000, LIBC_DEBUG_NAME, libc_id),
                                  _processed_lib(0x9000, 'libGL.so', gl_id)],
                                 [(0, 0x30), (1, 0x40)]),
            _processed_v4_thread('Content',
                                 [_processed_lib(0x3000, XUL_DEBUG_NAME, xul_id)],
                                 [(0, 0x50)]),
        ],
    }


# make_processed_v4_profile 升级后的期望结果
PROCESSED_V4_HOISTED_LIB_NAMES = [XUL_DEBUG_NAME, LIBC_DEBUG_NAME, 'libGL.so']
PROCESSED_V4_RESOURCE_LIBS = [[0, 1], [1, 2], [0]]
