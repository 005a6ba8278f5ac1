'''utilities for tests'''

# built-ins
import filecmp
import os
import shutil
import unittest

import pytest

# intra-project
import cellbc.util.file


def get_test_path():
    '''Return absolute path of "tests" directory'''
    return os.path.dirname(os.path.abspath(__file__))


def get_test_input_path(testClassInstance=None):
    '''Return the path to the directory containing input files for the specified
       test class
    '''
    if testClassInstance is not None:
        return os.path.join(get_test_path(), 'input', type(testClassInstance).__name__)
    else:
        return os.path.join(get_test_path(), 'input')


def assert_equal_contents(testCase, filename1, filename2):
    'Assert contents of two files are equal for a unittest.TestCase'
    testCase.assertTrue(filecmp.cmp(filename1, filename2, shallow=False))


def write_file(fname, text):
    with open(fname, 'wt') as outf:
        outf.write(text)


def read_fastq_headers(fname):
    '''Return the header lines (without "@") of a plain or gzipped fastq file.'''
    with cellbc.util.file.open_or_gzopen(fname, 'rt') as inf:
        return [line.rstrip('\n')[1:] for i, line in enumerate(inf) if i % 4 == 0]


@pytest.mark.usefixtures('tmpdir_class')
class TestCaseWithTmp(unittest.TestCase):
    '''Base class for tests that use temp dirs: self.tmpdir is a fresh
       directory for each test, removed after it.'''

    @pytest.fixture(autouse=True)
    def _tmpdir(self, tmpdir_function):
        self.tmpdir = tmpdir_function

    def assertEqualContents(self, f1, f2):
        assert_equal_contents(self, f1, f2)

    def input(self, fname):
        '''Return the full filename for a file in the test input directory for this test class'''
        return os.path.join(get_test_input_path(self), fname)

    def inputs(self, *fnames):
        '''Return the full filenames for files in the test input directory for this test class'''
        return [self.input(fname) for fname in fnames]

    def copy_inputs(self, *fnames):
        '''Copy input files into self.tmpdir, returning the copies' paths'''
        copies = []
        for fname in fnames:
            copies.append(os.path.join(self.tmpdir, fname))
            shutil.copy(self.input(fname), copies[-1])
        return copies
