#!/usr/bin/env python3
"""
格式升级测试
"""

import copy
import gzip
import json
import unittest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixtures import (
    PROCESSED_V4_HOISTED_LIB_NAMES, PROCESSED_V4_RESOURCE_LIBS, XUL_BREAKPAD_ID, XUL_DEBUG_NAME,
    make_gecko_v1_profile, make_legacy_profile, make_processed_v4_profile,
)
from trace_table_tool.errors import FutureVersionError, UnrecognizedFormatError
from trace_table_tool.models import MarkerPhase, ResourceType
from trace_table_tool.parser import (
    decode_profile_data, detect_format, unserialize_profile_of_arbitrary_format, upgrade_profile_document,
)
from trace_table_tool.upgrade import (
    CURRENT_GECKO_VERSION, CURRENT_PROCESSED_VERSION, convert_legacy_profile, get_processed_version,
    is_legacy_format, upgrade_document, upgrade_gecko_profile, upgrade_processed_profile,
)
from trace_table_tool.upgrade.common import upgrade_lib_fields


class TestUpgradePipeline(unittest.TestCase):
    """测试通用的升级运行器"""

    def _run(self, document, upgraders, current_version=2):
        def get_version(doc):
            return doc['meta'].get('version')

        def set_version(doc, version):
            doc['meta']['version'] = version

        return upgrade_document(document, upgraders, current_version, get_version, set_version, 'toy')

    def test_steps_run_in_order(self):
        calls = []

        def step_0(doc):
            calls.append((0, doc['meta']['version']))
            doc['a'] = 1

        def step_1(doc):
            calls.append((1, doc['meta']['version']))
            doc['b'] = doc['a'] + 1

        upgraded = self._run({'meta': {'version': 0}}, {0: step_0, 1: step_1})
        self.assertEqual(calls, [(0, 0), (1, 1)])
        self.assertEqual(upgraded, {'meta': {'version': 2}, 'a': 1, 'b': 2})

    def test_partial_upgrade_starts_at_document_version(self):
        upgraded = self._run({'meta': {'version': 1}, 'a': 5}, {1: lambda doc: doc.update(b=doc['a'])})
        self.assertEqual(upgraded['b'], 5)

    def test_input_not_modified(self):
        document = {'meta': {'version': 0}}
        self._run(document, {0: lambda doc: doc.update(a=1), 1: lambda doc: None})
        self.assertEqual(document, {'meta': {'version': 0}})

    def test_current_version_returned_unchanged(self):
        document = {'meta': {'version': 2}}
        self.assertIs(self._run(document, {}), document)

    def test_future_version(self):
        with self.assertRaises(FutureVersionError) as context:
            self._run({'meta': {'version': 3}}, {})
        self.assertEqual(context.exception.version, 3)
        self.assertEqual(context.exception.current_version, 2)

    def test_missing_step(self):
        with self.assertRaises(UnrecognizedFormatError):
            self._run({'meta': {'version': 0}}, {1: lambda doc: None})

    def test_invalid_version(self):
        for version in (None, 'seven', -1, True):
            with self.assertRaises(UnrecognizedFormatError):
                self._run({'meta': {'version': version}}, {})


class TestLibFields(unittest.TestCase):
    """测试库字段升级"""

    def test_breakpad_id_from_pdb(self):
        lib = upgrade_lib_fields({
            'start': 1, 'end': 2, 'name': 'libxul.so', 'path': '/libxul.so',
            'pdbName': 'xul.pdb', 'pdbSignature': '{abcd1234-0000-1111-2222-333344445555}', 'pdbAge': 10,
        })
        self.assertEqual(lib['debugName'], 'xul.pdb')
        self.assertEqual(lib['debugPath'], '/libxul.so')
        self.assertEqual(lib['breakpadId'], 'ABCD1234000011112222333344445555A')
        self.assertNotIn('pdbName', lib)

    def test_existing_breakpad_id_uppercased(self):
        lib = upgrade_lib_fields({'start': 1, 'end': 2, 'name': 'libc.so', 'breakpadId': 'c0ffee0'})
        self.assertEqual(lib['breakpadId'], 'C0FFEE0')
        self.assertEqual(lib['debugName'], 'libc.so')


class TestGeckoUpgrade(unittest.TestCase):
    """测试 gecko 原始采集的升级链"""

    def setUp(self):
        self.original = make_gecko_v1_profile()
        self.upgraded = upgrade_gecko_profile(self.original)

    def test_versions(self):
        self.assertEqual(self.upgraded['meta']['version'], CURRENT_GECKO_VERSION)
        self.assertEqual(self.upgraded['processes'][0]['meta']['version'], CURRENT_GECKO_VERSION)

    def test_input_not_modified(self):
        self.assertEqual(self.original, make_gecko_v1_profile())

    def test_idempotent(self):
        self.assertIs(upgrade_gecko_profile(self.upgraded), self.upgraded)

    def test_subprocesses_and_libs_parsed(self):
        subprocess_profile = self.upgraded['processes'][0]
        self.assertIsInstance(subprocess_profile, dict)
        self.assertIsInstance(subprocess_profile['libs'], list)
        xul = self.upgraded['libs'][1]
        self.assertEqual(xul['debugName'], XUL_DEBUG_NAME)
        self.assertEqual(xul['breakpadId'], XUL_BREAKPAD_ID)
        self.assertEqual(self.upgraded['libs'][0]['breakpadId'], 'C0FFEE0')

    def test_samples_schema(self):
        samples = self.upgraded['threads'][0]['samples']
        self.assertEqual(samples['schema'], {'stack': 0, 'time': 1, 'eventDelay': 2})
        self.assertEqual(samples['data'][0], [2, 0.0, 0.5])

    def test_markers_schema(self):
        thread = self.upgraded['threads'][0]
        markers = thread['markers']
        self.assertEqual(markers['schema'],
                         {'name': 0, 'startTime': 1, 'endTime': 2, 'phase': 3, 'category': 4, 'data': 5})
        names = [thread['stringTable'][row[0]] for row in markers['data']]
        self.assertEqual(names, ['Paint', 'Paint', 'DOMEvent'])

        paint_start, paint_end, dom_event = markers['data']
        self.assertEqual(paint_start[1:4], [0.5, None, MarkerPhase.interval_start])
        self.assertEqual(paint_end[1:4], [None, 2.5, MarkerPhase.interval_end])
        self.assertEqual(dom_event[1:4], [1.0, 1.5, MarkerPhase.interval])
        categories = self.upgraded['meta']['categories']
        self.assertEqual(categories[paint_start[4]]['name'], 'Graphics')
        self.assertEqual(categories[dom_event[4]]['name'], 'Other')

    def test_frame_table_columns(self):
        frame_table = self.upgraded['threads'][0]['frameTable']
        self.assertEqual(frame_table['schema'], {
            'location': 0, 'implementation': 1, 'optimizations': 2, 'line': 3, 'category': 4,
            'subcategory': 5, 'relevantForJS': 6, 'innerWindowID': 7, 'column': 8,
        })
        categories = self.upgraded['meta']['categories']
        root_row = frame_table['data'][0]
        self.assertEqual(categories[root_row[4]]['name'], 'Other')
        self.assertEqual(root_row[5:], [0, False, 0, None])
        native_row = frame_table['data'][1]
        self.assertIsNone(native_row[4])
        self.assertIsNone(native_row[5])
        self.assertEqual(categories[frame_table['data'][3][4]]['name'], 'JavaScript')

    def test_counter_samples(self):
        counter = self.upgraded['counters'][0]
        self.assertNotIn('sample_groups', counter)
        self.assertEqual(counter['samples']['schema'], {'time': 0, 'number': 1, 'count': 2})
        self.assertTrue(counter['relative'])

    def test_thread_lifetimes(self):
        thread = self.upgraded['processes'][0]['threads'][0]
        self.assertEqual(thread['registerTime'], 0)
        self.assertIsNone(thread['unregisterTime'])
        self.assertIn('shutdownTime', self.upgraded['meta'])

    def test_future_version(self):
        with self.assertRaises(FutureVersionError):
            upgrade_gecko_profile({'meta': {'version': CURRENT_GECKO_VERSION + 1}, 'threads': []})


class TestLegacyAndProcessedUpgrade(unittest.TestCase):
    """测试旧版格式转换和处理后格式的升级链"""

    def test_legacy_detection(self):
        self.assertTrue(is_legacy_format(make_legacy_profile()))
        self.assertFalse(is_legacy_format(make_gecko_v1_profile()))
        self.assertEqual(detect_format(make_legacy_profile()), 'legacy')

    def test_legacy_conversion(self):
        converted = convert_legacy_profile(make_legacy_profile())
        self.assertEqual(converted['meta']['preprocessedProfileVersion'], 0)
        thread = converted['threads'][0]
        self.assertEqual(thread['name'], 'GeckoMain')
        self.assertEqual(thread['samples']['stack'], [2, 2, 3])
        locations = [thread['stringArray'][index] for index in thread['frameTable']['location']]
        self.assertEqual(locations, ['(root)', 'main', 'doWork', 'onClick (https://example.com/ui.js:3)'])
        self.assertEqual(thread['stackTable']['prefix'], [None, 0, 1, 1])

    def test_legacy_to_current(self):
        upgraded = upgrade_processed_profile(convert_legacy_profile(make_legacy_profile()))
        self.assertEqual(upgraded['meta']['preprocessedProfileVersion'], CURRENT_PROCESSED_VERSION)
        self.assertTrue(upgraded['meta']['symbolicated'])
        self.assertEqual(upgraded['libs'], [])

        thread = upgraded['threads'][0]
        strings = thread['stringArray']
        func_table = thread['funcTable']
        self.assertEqual([strings[name] for name in func_table['name']],
                         ['(root)', 'main', 'doWork', 'onClick'])
        self.assertEqual(func_table['isJS'], [False, False, False, True])
        self.assertEqual(func_table['lineNumber'][3], 3)
        self.assertEqual(thread['resourceTable']['type'], [ResourceType.webhost])
        self.assertEqual(thread['samples']['eventDelay'], [0, 0, 4])
        self.assertEqual(thread['markers']['phase'], [MarkerPhase.instant])
        categories = upgraded['meta']['categories']
        self.assertEqual([categories[c]['name'] for c in thread['frameTable']['category']],
                         ['Other', 'Other', 'Other', 'JavaScript'])

    def test_missing_processed_version_is_zero(self):
        converted = convert_legacy_profile(make_legacy_profile())
        del converted['meta']['preprocessedProfileVersion']
        self.assertEqual(get_processed_version(converted), 0)
        self.assertEqual(detect_format(converted), 'processed')
        upgraded = upgrade_processed_profile(converted)
        self.assertEqual(upgraded['meta']['preprocessedProfileVersion'], CURRENT_PROCESSED_VERSION)

    def test_processed_idempotent(self):
        upgraded = upgrade_processed_profile(convert_legacy_profile(make_legacy_profile()))
        self.assertIs(upgrade_processed_profile(upgraded), upgraded)

    def test_processed_future_version(self):
        with self.assertRaises(FutureVersionError):
            upgrade_processed_profile({'meta': {'preprocessedProfileVersion': CURRENT_PROCESSED_VERSION + 1},
                                       'threads': []})

    def test_unsymbolicated_processed_profile(self):
        converted = convert_legacy_profile(make_legacy_profile())
        thread = converted['threads'][0]
        thread['stringArray'][thread['frameTable']['location'][1]] = '0x1234'
        upgraded = upgrade_processed_profile(converted)
        self.assertFalse(upgraded['meta']['symbolicated'])


class TestLibHoisting(unittest.TestCase):
    """测试线程级库列表提升到 profile 级别"""

    def test_libs_deduplicated_and_hoisted(self):
        document = make_processed_v4_profile()
        snapshot = copy.deepcopy(document)
        upgraded = upgrade_processed_profile(document)

        self.assertEqual(document, snapshot)
        self.assertEqual(upgraded['meta']['preprocessedProfileVersion'], CURRENT_PROCESSED_VERSION)
        self.assertEqual([lib['debugName'] for lib in upgraded['libs']], PROCESSED_V4_HOISTED_LIB_NAMES)
        # 第一次出现的库条目被保留，包括它的加载地址
        self.assertEqual(upgraded['libs'][0]['start'], 0x1000)
        for thread, expected in zip(upgraded['threads'], PROCESSED_V4_RESOURCE_LIBS):
            self.assertNotIn('libs', thread)
            self.assertEqual(thread['resourceTable']['lib'], expected)

    def test_later_steps_applied(self):
        upgraded = upgrade_processed_profile(make_processed_v4_profile())
        self.assertFalse(upgraded['meta']['symbolicated'])
        self.assertEqual(upgraded['meta']['markerSchema'], [])
        thread = upgraded['threads'][0]
        self.assertEqual(thread['samples']['eventDelay'], [2.0, 0.0])
        self.assertEqual(thread['funcTable']['relevantForJS'], [False, False])

    def test_load_hoisted_profile(self):
        profile = unserialize_profile_of_arbitrary_format(make_processed_v4_profile())
        self.assertEqual([lib.debug_name for lib in profile.libs], PROCESSED_V4_HOISTED_LIB_NAMES)
        self.assertEqual([thread.resource_table.lib for thread in profile.threads], PROCESSED_V4_RESOURCE_LIBS)
        content = profile.threads[2]
        self.assertEqual(content.get_func_name(0), '0x50')
        self.assertEqual(profile.libs[content.resource_table.lib[0]].debug_name, XUL_DEBUG_NAME)


class TestFormatDetection(unittest.TestCase):
    """测试格式识别和任意格式加载"""

    def test_detect_gecko(self):
        self.assertEqual(detect_format(make_gecko_v1_profile()), 'gecko')

    def test_unrecognized(self):
        for document in ({'foo': 1}, {'meta': {'version': 'abc'}}, {'meta': 'x'}):
            with self.assertRaises(UnrecognizedFormatError):
                detect_format(document)

    def test_decode_gzip(self):
        document = make_gecko_v1_profile()
        data = gzip.compress(json.dumps(document).encode('utf-8'))
        self.assertEqual(decode_profile_data(data), document)

    def test_decode_invalid_json(self):
        with self.assertRaises(UnrecognizedFormatError):
            decode_profile_data('not json')
        with self.assertRaises(UnrecognizedFormatError):
            decode_profile_data('[1, 2]')

    def test_upgrade_profile_document(self):
        profile_format, upgraded = upgrade_profile_document(make_gecko_v1_profile())
        self.assertEqual(profile_format, 'gecko')
        self.assertEqual(upgraded['meta']['version'], CURRENT_GECKO_VERSION)

    def test_future_gecko_version_fails_whole_load(self):
        document = make_gecko_v1_profile()
        document['meta']['version'] = CURRENT_GECKO_VERSION + 5
        with self.assertRaises(FutureVersionError):
            unserialize_profile_of_arbitrary_format(json.dumps(document))

    def test_load_legacy(self):
        profile = unserialize_profile_of_arbitrary_format(make_legacy_profile())
        self.assertEqual(len(profile.threads), 1)
        self.assertEqual(profile.threads[0].samples.length, 3)

    def test_load_does_not_modify_input(self):
        document = make_legacy_profile()
        snapshot = copy.deepcopy(document)
        unserialize_profile_of_arbitrary_format(document)
        self.assertEqual(document, snapshot)


if __name__ == '__main__':
    unittest.main()
