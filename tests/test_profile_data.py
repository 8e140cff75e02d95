#!/usr/bin/env python3
"""
线程数据查询、位置解析与标记处理测试
"""

import unittest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixtures import make_call_tree_thread
from trace_table_tool.errors import CorruptStackTableError
from trace_table_tool.locations import FuncTableBuilder, is_hex_address, parse_js_location
from trace_table_tool.markers import get_tracing_markers, marker_timing_from_payload
from trace_table_tool.models import (
    Lib, MarkerPhase, MarkersTable, ResourceType, SamplesTable, StackTable, StringTable, Thread,
)
from trace_table_tool.profile_data import (
    filter_thread_by_implementation, get_containing_library, get_containing_library_index,
    get_self_stack_indexes, get_stack_func_path, stack_processing_order,
)

LIBS = [
    Lib(start=0x1000, end=0x2000, name='liba.so', debug_name='liba.so'),
    Lib(start=0x3000, end=0x4000, name='libb.so', debug_name='libb.so'),
]


class TestContainingLibrary(unittest.TestCase):
    """测试地址所属库的查找"""

    def test_lookup(self):
        self.assertEqual(get_containing_library_index(LIBS, 0x1500), 0)
        self.assertEqual(get_containing_library_index(LIBS, 0x3000), 1)
        self.assertEqual(get_containing_library(LIBS, 0x3fff).name, 'libb.so')

    def test_outside_any_library(self):
        for address in (0x500, 0x2000, 0x2500, 0x4000):
            self.assertEqual(get_containing_library_index(LIBS, address), -1)
        self.assertIsNone(get_containing_library(LIBS, 0x2500))
        self.assertEqual(get_containing_library_index([], 0x1500), -1)


class TestStackHelpers(unittest.TestCase):
    """测试栈相关的工具函数"""

    def test_processing_order_puts_prefix_first(self):
        stack_table = StackTable(frame=[0, 1, 2], prefix=[2, None, 1])
        self.assertEqual(stack_processing_order(stack_table), [1, 2, 0])

    def test_processing_order_detects_cycle(self):
        stack_table = StackTable(frame=[0, 1], prefix=[1, 0])
        with self.assertRaises(CorruptStackTableError):
            stack_processing_order(stack_table, thread_index=0)

    def test_self_stacks_include_marker_stacks(self):
        thread = make_call_tree_thread()
        thread.markers = MarkersTable(
            data=[{'type': 'Paint', 'stack': 0}, None],
            name=[0, 0], start_time=[0.0, 1.0], end_time=[None, None], phase=[0, 0], category=[1, 1],
        )
        self.assertEqual(get_self_stack_indexes(thread), [0, 1, 2, 4, 5, 6])

    def test_stack_func_path(self):
        thread = make_call_tree_thread()
        self.assertEqual(get_stack_func_path(thread, 4), [0, 1, 2])
        self.assertEqual(get_stack_func_path(thread, 6), [3])

    def test_filter_combined_is_identity(self):
        thread = make_call_tree_thread()
        self.assertIs(filter_thread_by_implementation(thread, 'combined'), thread)

    def test_filter_js(self):
        thread = make_call_tree_thread()
        filtered = filter_thread_by_implementation(thread, 'js')
        self.assertEqual(filtered.stack_table.frame, [1, 3, 4])
        self.assertEqual(filtered.stack_table.prefix, [None, None, None])
        self.assertEqual(filtered.samples.stack, [0, 1, 0, 2, 2, 2])
        self.assertEqual(thread.stack_table.length, 7)

    def test_filter_cpp_drops_js_only_samples(self):
        filtered = filter_thread_by_implementation(make_call_tree_thread(), 'cpp')
        self.assertEqual(filtered.samples.stack, [1, 1, 0, 0, None, None])

    def test_unknown_filter(self):
        with self.assertRaises(ValueError):
            filter_thread_by_implementation(make_call_tree_thread(), 'wasm')


class TestLocations(unittest.TestCase):
    """测试位置字符串解析和函数表构建"""

    def test_hex_address(self):
        self.assertTrue(is_hex_address('0x7f12ab'))
        self.assertFalse(is_hex_address('0xZZ'))
        self.assertFalse(is_hex_address('main'))

    def test_parse_js_location(self):
        location = parse_js_location('onLoad (https://example.com/app.js:10:5)')
        self.assertEqual(location.func_name, 'onLoad')
        self.assertEqual(location.url, 'https://example.com/app.js')
        self.assertEqual((location.line, location.column), (10, 5))

        location = parse_js_location('run (resource://gre/modules/Foo.jsm:3)')
        self.assertEqual(location.url, 'resource://gre/modules/Foo.jsm')
        self.assertEqual((location.line, location.column), (3, None))

    def test_parse_non_js_location(self):
        self.assertIsNone(parse_js_location('nsThread::ProcessNextEvent'))
        self.assertIsNone(parse_js_location('Paint (in layout)'))

    def test_func_table_builder(self):
        string_table = StringTable()
        builder = FuncTableBuilder(string_table, LIBS, [4, 7])
        native, address = builder.add_location('0x3010')
        self.assertEqual(address, 0x10)
        self.assertEqual(builder.add_location('0x3010'), (native, 0x10))
        self.assertEqual(builder.resource_table.lib, [7])
        self.assertEqual(builder.resource_table.type, [ResourceType.library])

        unknown, address = builder.add_location('0x9999')
        self.assertEqual(address, -1)
        self.assertEqual(builder.func_table.resource[unknown], -1)

        js_func, _ = builder.add_location('run (resource://gre/modules/Foo.jsm:3)', relevant_for_js=True)
        self.assertTrue(builder.func_table.is_js[js_func])
        self.assertTrue(builder.func_table.relevant_for_js[js_func])
        self.assertEqual(builder.resource_table.type[-1], ResourceType.url)

        label, _ = builder.add_location('(root)')
        self.assertEqual(builder.add_location('(root)')[0], label)
        self.assertEqual(builder.func_table.length, 4)


class TestMarkers(unittest.TestCase):
    """测试标记处理"""

    def test_marker_timing_from_payload(self):
        self.assertEqual(marker_timing_from_payload(1.0, None), (1.0, None, MarkerPhase.instant))
        self.assertEqual(marker_timing_from_payload(1.0, {'interval': 'start'}),
                         (1.0, None, MarkerPhase.interval_start))
        self.assertEqual(marker_timing_from_payload(2.0, {'interval': 'end'}),
                         (None, 2.0, MarkerPhase.interval_end))
        self.assertEqual(marker_timing_from_payload(2.0, {'startTime': 1.0, 'endTime': 3.0}),
                         (1.0, 3.0, MarkerPhase.interval))

    def _thread(self, names, start_times, end_times, phases):
        string_table = StringTable()
        return Thread(
            name='GeckoMain',
            samples=SamplesTable(stack=[None, None], time=[0.0, 10.0], event_delay=[0.0, 0.0]),
            markers=MarkersTable(
                data=[{'title': name} for name in names],
                name=[string_table.index_for_string(name) for name in names],
                start_time=start_times,
                end_time=end_times,
                phase=phases,
                category=[1] * len(names),
            ),
            string_table=string_table,
        )

    def test_tracing_markers(self):
        thread = self._thread(
            ['Paint', 'Reflow', 'Paint', 'GC'],
            [1.0, 2.0, None, 4.0],
            [None, None, 3.0, 5.0],
            [MarkerPhase.interval_start, MarkerPhase.instant, MarkerPhase.interval_end, MarkerPhase.interval],
        )
        markers = get_tracing_markers(thread)
        self.assertEqual([(m.name, m.start, m.dur) for m in markers],
                         [('Paint', 1.0, 2.0), ('Reflow', 2.0, 0), ('GC', 4.0, 1.0)])
        self.assertEqual(markers[0].title, 'Paint')

    def test_unmatched_markers_extend_to_thread_bounds(self):
        thread = self._thread(
            ['Load', 'Script'],
            [None, 6.0],
            [4.0, None],
            [MarkerPhase.interval_end, MarkerPhase.interval_start],
        )
        markers = get_tracing_markers(thread)
        self.assertEqual([(m.name, m.start, m.dur) for m in markers],
                         [('Load', 0.0, 4.0), ('Script', 6.0, 4.0)])


if __name__ == '__main__':
    unittest.main()
