import tempfile

import pytest

import cellbc.util.file


# Per-class and per-test temporary directories made with
# cellbc.util.file.tmp_dir, so CELLBC_TMP_DIRKEEP keeps them for debugging.
# Each test's directory also becomes the tempfile default and TMPDIR, so
# anything a test creates through tempfile is removed along with it.


def _prefix(kind, name):
    return 'test-{}-{}-'.format(kind, name).replace('/', '_')


@pytest.fixture(scope='class')
def tmpdir_class(request, tmp_path_factory):
    """A temporary directory shared by the tests of one class (or module, for plain functions)."""
    name = request.cls.__name__ if request.cls else request.module.__name__
    with cellbc.util.file.tmp_dir(dir=str(tmp_path_factory.getbasetemp()), prefix=_prefix('class', name)) as tmpdir:
        yield tmpdir


@pytest.fixture(autouse=True)
def tmpdir_function(request, tmpdir_class, monkeypatch):
    """A fresh temporary directory for each test."""
    with cellbc.util.file.tmp_dir(dir=tmpdir_class, prefix=_prefix('node', request.node.name)) as tmpdir:
        monkeypatch.setattr(tempfile, 'tempdir', tmpdir)
        monkeypatch.setenv('TMPDIR', tmpdir)
        yield tmpdir
