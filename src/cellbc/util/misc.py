'''A few miscellaneous tools. '''
import collections.abc
import json
import logging
import math
import multiprocessing
import os, os.path
import re
import yaml

import cellbc.util.file

log = logging.getLogger(__name__)


def _make_complement_table():
    '''256-entry translation table: ACGTN (either case) to their upper-case
       complement, every other byte to N.'''
    table = bytearray(b'N' * 256)
    for base, comp in zip(b'ACGTNacgtn', b'TGCANTGCAN'):
        table[base] = comp
    return bytes(table)

COMPLEMENT_TABLE = _make_complement_table()


def reverse_complement(seq):
    """
        Returns the reverse complement of a bytes or str sequence, using a
        bytes.translate table. Symbols outside of ACGTN are mapped to N.
        The return type matches the input type.
    """
    if isinstance(seq, str):
        return seq.encode('UTF8', 'replace').translate(COMPLEMENT_TABLE)[::-1].decode('ascii')
    return bytes(seq).translate(COMPLEMENT_TABLE)[::-1]


def _cgroup_cpu_limit():
    '''CPUs granted by a cgroup (v2 cpu.max, or v1 cfs quota/period), or None if unlimited.'''
    if os.path.exists('/sys/fs/cgroup/cgroup.controllers'):
        fields = cellbc.util.file.slurp_file('/sys/fs/cgroup/cpu.max').split()
        if fields[0] == 'max':
            return None
        quota = int(fields[0])
        period = int(fields[1]) if len(fields) > 1 else 100000
    else:
        quota = int(cellbc.util.file.slurp_file('/sys/fs/cgroup/cpu/cpu.cfs_quota_us'))
        period = int(cellbc.util.file.slurp_file('/sys/fs/cgroup/cpu/cpu.cfs_period_us'))
    if quota > 0 and period > 0:
        return max(1, int(math.ceil(quota / period)))
    return None


def available_cpu_count():
    """
    Return the number of CPUs this process may actually use: the machine's
    count, lowered by a container cgroup quota or a cpuset affinity mask
    (as on some cluster schedulers) where those are in effect.
    """
    counts = [multiprocessing.cpu_count()]
    try:
        limit = _cgroup_cpu_limit()
        if limit:
            counts.append(limit)
    except (IOError, ValueError, IndexError):
        log.debug('no cgroup cpu limit found')
    try:
        m = re.search(r'(?m)^Cpus_allowed:\s*(.*)$', cellbc.util.file.slurp_file('/proc/self/status'))
        if m:
            allowed = bin(int(m.group(1).replace(',', ''), 16)).count('1')
            if allowed:
                counts.append(allowed)
    except (IOError, ValueError):
        pass
    log.debug('cpu counts (machine, cgroup, cpuset): %s', counts)
    return min(counts)


def sanitize_thread_count(threads=None):
    ''' Clamp a requested thread count to 1..available_cpu_count(); None
        means all available CPUs. Under pytest-xdist (PYTEST_XDIST_WORKER_COUNT
        set) every caller gets a single thread.
    '''
    if 'PYTEST_XDIST_WORKER_COUNT' in os.environ:
        return 1
    max_cores = available_cpu_count()
    if threads is None:
        return max_cores
    assert type(threads) == int
    return max(1, min(threads, max_cores))


def make_seq(x, str_types=str):
    '''Return a tuple of the items in `x`, or `(x,)` if `x` is a string or not iterable.'''
    if isinstance(x, collections.abc.Iterable) and not isinstance(x, str_types):
        return tuple(x)
    return (x,)


def load_yaml_or_json(fname):
    '''Load a dictionary from either a yaml or a json file'''
    with open(fname) as f:
        if fname.upper().endswith(('.YAML', '.YML')): return yaml.safe_load(f) or {}
        if fname.upper().endswith('.JSON'): return json.load(f) or {}
        raise TypeError('Unsupported dict file format: ' + fname)


def load_config(cfg, include_directive='include'):
    '''Load a configuration mapping from a dict or a yaml/json file.

    The mapping may name other config files (a filename or list of them) under
    `include_directive`; relative names are resolved against the directory of
    the including file. Included files are merged first, in order, and the
    including file's own values win. Nested mappings are merged key by key.
    '''
    base_dir = None
    if isinstance(cfg, str):
        fname = os.path.realpath(cfg)
        base_dir = os.path.dirname(fname)
        cfg = load_yaml_or_json(fname)

    result = {}
    for included in make_seq(cfg.get(include_directive, [])):
        if base_dir and not os.path.isabs(included):
            included = os.path.join(base_dir, included)
        _merge_config(result, load_config(included, include_directive=include_directive))
    _merge_config(result, cfg)
    result.pop(include_directive, None)
    return result


def _merge_config(into, other):
    for key, value in other.items():
        if isinstance(value, collections.abc.Mapping):
            into[key] = _merge_config(dict(into.get(key) or {}), value)
        else:
            into[key] = value
    return into


def chk(condition, message='Check failed', exc=RuntimeError):
    """Check a condition, raise an exception if condition is False."""
    if not condition:
        raise exc(message)
