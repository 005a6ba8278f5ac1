# Unit tests for cellbc.util.misc

import os
import unittest

import pytest

import cellbc.util.misc
from tests import get_test_input_path


class TestReverseComplement(unittest.TestCase):

    def test_bytes(self):
        self.assertEqual(cellbc.util.misc.reverse_complement(b'AACGTN'), b'NACGTT')

    def test_str(self):
        self.assertEqual(cellbc.util.misc.reverse_complement('GATTACA'), 'TGTAATC')

    def test_lowercase_and_ambiguity_codes(self):
        self.assertEqual(cellbc.util.misc.reverse_complement(b'acRYg'), b'CNNGT')

    def test_empty(self):
        self.assertEqual(cellbc.util.misc.reverse_complement(b''), b'')


class TestConfigIncludes(unittest.TestCase):

    def testConfigIncludes(self):

        def test_fn(f): return os.path.join(get_test_input_path(), 'TestConfigIncludes', f)
        cfg1 = cellbc.util.misc.load_config(test_fn('cfg1.yaml'))
        cfg2 = cellbc.util.misc.load_config(test_fn('cfg2.yaml'))

        self.assertEqual(cfg1, {'threads': 2, 'compressor': 'pigz', 'decompressor': 'pigz',
                                'from_char': 0, 'to_char': 16, 'recomp': True})
        self.assertEqual(cfg2['to_char'], 12)
        self.assertEqual(cfg2['compressor'], 'gzip')
        self.assertEqual(cfg2['decompressor'], 'pigz')
        self.assertTrue(cfg2['recomp'])
        self.assertNotIn('include', cfg2)
        self.assertEqual(cellbc.util.misc.load_config(test_fn('cfg3.json')),
                         {'annotation_style': 'description', 'out_dir': 'annotated'})

        self.assertEqual(cellbc.util.misc.load_config(test_fn('empty.yaml')), {})

    def test_mapping_passes_through(self):
        self.assertEqual(cellbc.util.misc.load_config({'threads': 3}), {'threads': 3})

    def test_unsupported_format(self):
        with self.assertRaises(TypeError):
            cellbc.util.misc.load_yaml_or_json(os.path.join(get_test_input_path(), 'TestAddCell', 'Cell.fastq'))


class TestSanitizeThreadCount(object):

    @pytest.fixture(autouse=True)
    def no_xdist(self, monkeypatch):
        monkeypatch.delenv('PYTEST_XDIST_WORKER_COUNT', raising=False)

    def test_none_means_all_cores(self):
        assert cellbc.util.misc.sanitize_thread_count(None) == cellbc.util.misc.available_cpu_count()

    def test_lower_bound(self):
        assert cellbc.util.misc.sanitize_thread_count(0) == 1
        assert cellbc.util.misc.sanitize_thread_count(-4) == 1

    def test_upper_bound(self):
        assert cellbc.util.misc.sanitize_thread_count(10 ** 6) == cellbc.util.misc.available_cpu_count()

    def test_xdist_worker(self, monkeypatch):
        monkeypatch.setenv('PYTEST_XDIST_WORKER_COUNT', '4')
        assert cellbc.util.misc.sanitize_thread_count(8) == 1


def test_available_cpu_count():
    assert cellbc.util.misc.available_cpu_count() >= 1


def test_make_seq():
    assert cellbc.util.misc.make_seq('a.fq') == ('a.fq',)
    assert cellbc.util.misc.make_seq(['a.fq', 'b.fq']) == ('a.fq', 'b.fq')
    assert cellbc.util.misc.make_seq(()) == ()


def test_chk():
    cellbc.util.misc.chk(True)
    with pytest.raises(RuntimeError):
        cellbc.util.misc.chk(False)
    with pytest.raises(ValueError) as excinfo:
        cellbc.util.misc.chk(1 > 2, 'one is not more than two', ValueError)
    assert 'one is not more than two' in str(excinfo.value)
