'''This gives a number of useful quick methods for dealing with
gzipped and plain read files: streaming them through external
(de)compressor coprocesses, parsing them into records, and naming
the files we write, plus general file-handling routines.
'''

import collections
import contextlib
import gzip
import io
import logging
import os
import shutil
import subprocess
import tempfile

from Bio.SeqIO.FastaIO import SimpleFastaParser
from Bio.SeqIO.QualityIO import FastqGeneralIterator

import cellbc.util.misc
from cellbc.errors import ConfigurationError

log = logging.getLogger(__name__)

KNOWN_READ_SUFFIXES = ('.fastq.gz', '.fq.gz', '.fastq', '.fq')
CELLS_ADDED_TAG = '_cells_added'

FastxRecord = collections.namedtuple('FastxRecord', ['identifier', 'description', 'sequence', 'quality'])


def check_paths(read=(), write=()):
    '''Fail early, before any process is started, if an input cannot be
       opened or an output cannot be created. Each arg is a filename or a
       list of filenames. Raises OSError.
    '''
    for fname in cellbc.util.misc.make_seq(read):
        with open(fname, 'rb'):
            pass
    for fname in cellbc.util.misc.make_seq(write):
        if os.path.exists(fname):
            if not (os.path.isfile(fname) and os.access(fname, os.W_OK)):
                raise PermissionError('Cannot write ' + fname)
        else:
            with open(fname, 'wb'):
                pass
            os.unlink(fname)


@contextlib.contextmanager
def tmp_dir(*args, **kwargs):
    '''A temporary directory (args as for tempfile.mkdtemp), removed on exit
       unless CELLBC_TMP_DIRKEEP is set.'''
    name = tempfile.mkdtemp(*args, **kwargs)
    try:
        yield name
    finally:
        if keep_tmp():
            log.debug('keeping tempdir %s', name)
        else:
            shutil.rmtree(name, ignore_errors=True)


def keep_tmp():
    return 'CELLBC_TMP_DIRKEEP' in os.environ


def mkdir_p(dirpath):
    os.makedirs(dirpath, exist_ok=True)


def open_or_gzopen(fname, mode='rt', **kwargs):
    '''open(), or gzip.open() for names ending in .gz; text mode unless mode says "b".'''
    if fname.endswith('.gz'):
        if 'b' not in mode and 't' not in mode:
            mode += 't'
        return gzip.open(fname, mode, **kwargs)
    return open(fname, mode, **kwargs)


def slurp_file(fname):
    """Read a whole (possibly gzipped) text file into one string."""
    with open_or_gzopen(fname) as f:
        return f.read()


def cells_added_name(input_path, out_dir=None):
    '''Derive the output filename for a read file that gets cell barcodes added:
       sample.fastq.gz -> sample_cells_added.fastq.gz, sample.bam -> sample_cells_added.bam,
       sample -> sample_cells_added. If out_dir is given, the output goes there instead
       of next to the input.
    '''
    dirname, fname = os.path.split(input_path)
    for suffix in KNOWN_READ_SUFFIXES:
        if fname.endswith(suffix) and len(fname) > len(suffix):
            base = fname[:-len(suffix)]
            break
    else:
        base, suffix = os.path.splitext(fname)
    out_name = base + CELLS_ADDED_TAG + suffix
    return os.path.join(out_dir if out_dir is not None else dirname, out_name)


class PipeSink(object):
    ''' Writes bytes into the stdin of an external compressor whose stdout
        is redirected into out_path. The pipe is always closed before the
        process is awaited; awaiting first would hang forever since the
        compressor keeps waiting for more input.
    '''

    def __init__(self, cmd, out_path):
        self.cmd = list(cmd)
        self.out_path = out_path
        self.closed = False
        try:
            self.outf = open(out_path, 'wb')
        except OSError as e:
            raise ConfigurationError('cannot create output file {}: {}'.format(out_path, e))
        log.debug("%s > %s", ' '.join(self.cmd), out_path)
        try:
            self.proc = subprocess.Popen(self.cmd, stdin=subprocess.PIPE, stdout=self.outf)
        except OSError as e:
            self.outf.close()
            raise ConfigurationError('cannot start {}: {}'.format(self.cmd[0], e))

    def write(self, data):
        if isinstance(data, str):
            data = data.encode('utf-8')
        self.proc.stdin.write(data)

    def close(self):
        if self.closed:
            return
        self.closed = True
        try:
            self.proc.stdin.close()
        finally:
            self.proc.wait()
            self.outf.close()
        if self.proc.returncode != 0:
            raise subprocess.CalledProcessError(self.proc.returncode, self.cmd)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
            return False
        try:
            self.close()
        except (OSError, subprocess.CalledProcessError) as e:
            # the error already propagating is the one the caller needs to see
            log.error("%s also failed while shutting down: %s", self.cmd[0], e)
        return False


class PlainSink(object):
    ''' Uncompressed output with the same interface as PipeSink. '''

    def __init__(self, out_path):
        self.out_path = out_path
        try:
            self.outf = self._open(out_path)
        except OSError as e:
            raise ConfigurationError('cannot create output file {}: {}'.format(out_path, e))

    def _open(self, out_path):
        return open(out_path, 'wb')

    def write(self, data):
        if isinstance(data, str):
            data = data.encode('utf-8')
        self.outf.write(data)

    def close(self):
        self.outf.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class GzipSink(PlainSink):
    ''' In-process stand-in for PipeSink, compressing with the gzip module. '''

    def __init__(self, out_path, compresslevel=6):
        self.compresslevel = compresslevel
        super(GzipSink, self).__init__(out_path)

    def _open(self, out_path):
        return gzip.open(out_path, 'wb', compresslevel=self.compresslevel)


class PipeSource(object):
    ''' Runs `cmd in_path` (e.g. pigz -dc) and exposes its stdout as a
        buffered binary stream.
    '''

    def __init__(self, cmd, in_path):
        self.cmd = list(cmd) + [in_path]
        log.debug(' '.join(self.cmd))
        try:
            self.proc = subprocess.Popen(self.cmd, stdout=subprocess.PIPE)
        except OSError as e:
            raise ConfigurationError('cannot start {}: {}'.format(self.cmd[0], e))
        self.stdout = self.proc.stdout

    def close(self):
        if self.proc.returncode is not None:
            return
        try:
            self.stdout.close()
        finally:
            self.proc.wait()
        if self.proc.returncode > 0:
            raise subprocess.CalledProcessError(self.proc.returncode, self.cmd)
        elif self.proc.returncode < 0:
            # killed by SIGPIPE because we stopped reading early
            log.debug("%s exited on signal %d", self.cmd[0], -self.proc.returncode)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.close()
            return False
        try:
            self.close()
        except (OSError, subprocess.CalledProcessError) as e:
            log.error("%s also failed while shutting down: %s", self.cmd[0], e)
        return False


def open_reads(in_path, decompress_cmd=None):
    '''Open a (possibly gzipped) read file as a binary stream supporting peek().
       Gzipped input is decompressed by decompress_cmd run as a coprocess if
       given, or in-process by the gzip module otherwise. Returns a context
       manager whose value is the stream.
    '''
    if in_path.endswith('.gz'):
        if decompress_cmd:
            source = PipeSource(decompress_cmd, in_path)
            return _closing_value(source, source.stdout)
        return gzip.open(in_path, 'rb')
    return open(in_path, 'rb')


@contextlib.contextmanager
def _closing_value(owner, value):
    with owner:
        yield value


def open_writer(out_path, compress_cmd=None):
    '''Open a sink for out_path: compressed by compress_cmd as a coprocess,
       or by the gzip module, if out_path ends in .gz; uncompressed otherwise.
    '''
    if out_path.endswith('.gz'):
        if compress_cmd:
            return PipeSink(compress_cmd, out_path)
        return GzipSink(out_path)
    return PlainSink(out_path)


def read_fastx(handle):
    ''' Iterate over the records of a binary FASTQ or FASTA stream, yielding
        FastxRecord tuples. The format is sniffed from the first byte; FASTA
        records have quality None. Bytes that are not valid UTF-8 are
        replaced rather than raising. Malformed records raise ValueError
        from the Biopython parsers.
    '''
    if not hasattr(handle, 'peek'):
        handle = io.BufferedReader(handle)
    first = handle.peek(1)[:1]
    text = io.TextIOWrapper(handle, encoding='utf-8', errors='replace')
    if first == b'>':
        for title, seq in SimpleFastaParser(text):
            yield FastxRecord(*_split_title(title), seq, None)
    else:
        for title, seq, qual in FastqGeneralIterator(text):
            yield FastxRecord(*_split_title(title), seq, qual)


def _split_title(title):
    parts = title.split(None, 1)
    if not parts:
        return '', ''
    return parts[0], parts[1] if len(parts) > 1 else ''
