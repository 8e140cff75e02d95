#!/usr/bin/env python3
"""
调用树汇总与输出测试
"""

import json
import os
import tempfile
import unittest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixtures import make_call_tree_thread, make_gecko_v1_profile
from trace_table_tool.analyzer import analyze_profile_file, summarize_profile
from trace_table_tool.analyzer.main import counter_rows, marker_rows
from trace_table_tool.analyzer.presenter import _generate_base_name, _generate_output_files, _sheet_name
from trace_table_tool.builder import process_gecko_profile
from trace_table_tool.config import ProcessingConfig
from trace_table_tool.parser import unserialize_profile_of_arbitrary_format
from trace_table_tool.upgrade import upgrade_gecko_profile


def build_profile():
    return process_gecko_profile(upgrade_gecko_profile(make_gecko_v1_profile()))


class TestSummarizeProfile(unittest.TestCase):
    """测试按线程的调用树汇总"""

    def setUp(self):
        self.profile = build_profile()

    def test_summaries(self):
        summaries = summarize_profile(self.profile, max_workers=1)
        self.assertEqual([summary.thread_index for summary in summaries], [0, 1, 2])
        main = summaries[0]
        self.assertIsNone(main.error)
        self.assertEqual(main.sample_count, 4)
        root = main.rows[0]
        self.assertEqual(root['function'], '(root)')
        self.assertEqual(root['total'], 4.0)
        self.assertEqual(root['total_ratio'], 100.0)
        self.assertEqual(root['parent'], -1)

    def test_row_columns(self):
        rows = summarize_profile(self.profile, max_workers=1)[0].rows
        by_function = {row['function']: row for row in rows}
        self.assertEqual(by_function['onLoad']['resource'], 'example.com')
        self.assertEqual(by_function['onLoad']['category'], 'JavaScript')
        self.assertEqual(by_function['0x1200']['self'], 2.0)
        self.assertEqual(by_function['0x1100']['total'], 3.0)

    def test_inverted(self):
        rows = summarize_profile(self.profile, inverted=True, max_workers=1)[0].rows
        roots = {row['function']: row for row in rows if row['parent'] == -1}
        self.assertEqual(set(roots), {'0x1200', 'onLoad', '0x1100'})
        self.assertEqual(sum(row['self'] for row in roots.values()), 4.0)

    def test_corrupt_thread_isolated(self):
        thread = make_call_tree_thread()
        thread.stack_table.prefix[0] = 4
        self.profile.threads.append(thread)
        summaries = summarize_profile(self.profile, max_workers=1)
        self.assertIsNotNone(summaries[3].error)
        self.assertEqual(summaries[3].rows, [])
        self.assertIsNone(summaries[0].error)

    def test_cyclic_thread_in_loaded_capture(self):
        document = make_gecko_v1_profile()
        document['threads'][0]['stackTable']['data'][0][0] = 1
        profile = unserialize_profile_of_arbitrary_format(document)
        summaries = summarize_profile(profile, max_workers=1)

        self.assertIn('前缀链存在环', summaries[0].error)
        self.assertEqual(summaries[0].rows, [])
        for summary in summaries[1:]:
            self.assertIsNone(summary.error)
            self.assertEqual(summary.rows[0]['total'], float(summary.sample_count))

    def test_counter_and_marker_rows(self):
        counters = counter_rows(self.profile)
        self.assertEqual(counters[0]['name'], 'malloc')
        self.assertEqual(counters[0]['max'], 30.0)
        self.assertEqual(counters[0]['min'], -20.0)

        markers = marker_rows(self.profile)
        names = [(row['thread_index'], row['name']) for row in markers]
        self.assertEqual(names, [(0, 'Paint'), (0, 'DOMEvent'), (2, 'Styles')])


class TestPresenter(unittest.TestCase):
    """测试输出文件生成"""

    def test_sheet_name(self):
        used = set()
        long_name = 'x' * 40
        first = _sheet_name(long_name, used)
        second = _sheet_name(long_name, used)
        self.assertEqual(len(first), 31)
        self.assertEqual(len(second), 31)
        self.assertNotEqual(first, second)
        self.assertEqual(_sheet_name('a/b:c', used), 'a_b_c')

    def test_base_name(self):
        config = ProcessingConfig(label='baseline', implementation='js', inverted=True)
        self.assertEqual(_generate_base_name(config), 'baseline_calltree_js_inverted')

    def test_generate_output_files(self):
        profile = build_profile()
        summaries = summarize_profile(profile, max_workers=1)
        with tempfile.TemporaryDirectory() as temp_dir:
            files = _generate_output_files(summaries, counter_rows(profile), marker_rows(profile),
                                           temp_dir, 'test', ['json', 'csv', 'xlsx'])
            self.assertEqual([path.name for path in files], ['test.json', 'test.csv', 'test.xlsx'])
            for path in files:
                self.assertTrue(path.exists())
            with open(files[0], 'r', encoding='utf-8') as f:
                payload = json.load(f)
            self.assertEqual(len(payload['threads']), 3)
            self.assertEqual(payload['counters'][0]['name'], 'malloc')

    def test_analyze_profile_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            input_file = os.path.join(temp_dir, 'capture.json')
            with open(input_file, 'w', encoding='utf-8') as f:
                json.dump(make_gecko_v1_profile(), f)
            config = ProcessingConfig(output_format='json', output_dir=temp_dir, max_workers=1)
            summaries, files = analyze_profile_file(input_file, config)
            self.assertEqual(len(summaries), 3)
            self.assertEqual([path.name for path in files], ['profile_calltree_combined.json'])


if __name__ == '__main__':
    unittest.main()
