#!/usr/bin/env python3
"""
Utilities for adding cell barcodes to sequence reads: the barcode read of
each read set is clipped, optionally reverse-complemented, and spliced into
the read names of the matching R1 (and R2) reads.
"""

__commands__ = []

import argparse
import collections
import contextlib
import logging
import os
import sys

import cellbc.tools.pigz
import cellbc.util.cmd
import cellbc.util.file
import cellbc.util.misc
from cellbc.errors import ConfigurationError

log = logging.getLogger(__name__)

ANNOTATION_STYLES = ('colon', 'description')
COMPRESSION_STRATEGIES = ('pigz', 'gzip')
PROGRESS_INTERVAL = 1000000

AnnotationCounts = collections.namedtuple('AnnotationCounts', ['barcode', 'primary', 'secondary'])

# =============================
# ***  barcode annotation  ***
# =============================


def clip_window(length, clip_start=None, clip_end=None):
    '''Return the (start, end) slice to keep out of a sequence of the given
       length, or None if the requested window does not fit, in which case
       the whole sequence is used.
    '''
    start = 0 if clip_start is None else clip_start
    end = length if clip_end is None else clip_end
    if start < end <= length:
        return start, end
    return None


def transform_barcode(sequence, clip_start=None, clip_end=None, reverse_complement=False):
    ''' Clip a barcode read sequence to [clip_start, clip_end) and optionally
        reverse-complement it. A window that does not fit the sequence falls
        back to the whole sequence. Returns a str.
    '''
    if isinstance(sequence, str):
        sequence = sequence.encode('utf-8', 'replace')
    window = clip_window(len(sequence), clip_start, clip_end)
    if window is not None:
        sequence = sequence[window[0]:window[1]]
    if reverse_complement:
        return cellbc.util.misc.reverse_complement(sequence).decode('ascii')
    return sequence.decode('utf-8', 'replace')


def _as_text(value):
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8', 'replace')
    return value


def format_fastq_record(identifier, annotation, sequence, quality=None, description='', style='colon'):
    ''' Render one four-line FASTQ record with `annotation` injected into its header.

        style 'colon': the header (identifier and description) has its spaces
            replaced by colons and ':annotation' appended, e.g.
            "@read1:1:N:0:ACGTACGT" for identifier "read1", description "1:N:0"
        style 'description': the annotation becomes an extra whitespace
            separated field at the end of the header, e.g. "@read1 1:N:0 ACGTACGT"

        Records without quality (FASTA input) get an empty quality line.
    '''
    identifier, annotation, sequence, quality, description = map(
        _as_text, (identifier, annotation, sequence, quality, description))
    header = identifier + ' ' + description if description else identifier
    if style == 'colon':
        header = header.replace(' ', ':') + ':' + annotation
    elif style == 'description':
        header = header + ' ' + annotation
    else:
        raise ValueError('unknown annotation style: {}'.format(style))
    return '@{}\n{}\n+\n{}\n'.format(header, sequence, quality or '')


class BarcodeAnnotator(object):
    ''' Run-wide settings for turning a barcode read into an annotation and
        splicing it into other reads.
    '''

    def __init__(self, clip_start=None, clip_end=None, reverse_complement=False, style='colon'):
        if style not in ANNOTATION_STYLES:
            raise ConfigurationError('unknown annotation style {}, expected one of {}'.format(
                style, ', '.join(ANNOTATION_STYLES)))
        for clip in (clip_start, clip_end):
            if clip is not None and clip < 0:
                raise ConfigurationError('clip positions must be non-negative, got {}'.format(clip))
        self.clip_start = clip_start
        self.clip_end = clip_end
        self.reverse_complement = reverse_complement
        self.style = style
        self.unclipped = 0

    def annotation(self, barcode_seq):
        clipping = self.clip_start is not None or self.clip_end is not None
        if clipping and clip_window(len(barcode_seq), self.clip_start, self.clip_end) is None:
            self.unclipped += 1
        return transform_barcode(barcode_seq, self.clip_start, self.clip_end, self.reverse_complement)

    def format(self, record, annotation):
        return format_fastq_record(record.identifier, annotation, record.sequence,
                                   quality=record.quality, description=record.description, style=self.style)


def _next_record(name, records):
    try:
        return next(records)
    except StopIteration:
        return None
    except ValueError as e:
        # resyncing after a bad record could pair reads with the wrong barcode
        log.warning("malformed record in %s reads, stopping here: %s", name, e)
        return None


def annotate_reads(barcode_reads, primary_reads, primary_sink,
                   secondary_reads=None, secondary_sink=None, annotator=None):
    ''' Walk the barcode, primary (R1) and optional secondary (R2) read
        streams in lockstep, writing each primary/secondary read to its sink
        with the transformed barcode of the same position spliced into its
        name. The run ends as soon as any stream runs out (or yields a
        malformed record); a shorter R2 ends the run for R1 too.

        The sinks are left open: closing them is up to the caller.
        Returns an AnnotationCounts of reads written per stream.
    '''
    cellbc.util.misc.chk((secondary_reads is None) == (secondary_sink is None),
                         'secondary reads and secondary sink must be given together', ValueError)
    annotator = annotator or BarcodeAnnotator()

    streams = [('barcode', iter(barcode_reads)), ('R1', iter(primary_reads))]
    if secondary_reads is not None:
        streams.append(('R2', iter(secondary_reads)))

    n_written = 0
    while True:
        records = [_next_record(name, it) for name, it in streams]
        if any(rec is None for rec in records):
            break
        annotation = annotator.annotation(records[0].sequence)
        primary_sink.write(annotator.format(records[1], annotation))
        if secondary_sink is not None:
            secondary_sink.write(annotator.format(records[2], annotation))
        n_written += 1
        if n_written % PROGRESS_INTERVAL == 0:
            log.debug("annotated %d reads", n_written)

    exhausted = [name for (name, _), rec in zip(streams, records) if rec is None]
    remaining = [name for (name, _), rec in zip(streams, records) if rec is not None]
    if remaining:
        log.warning("%s reads ended after %d records while %s reads had more; the extra reads were not written",
                    '/'.join(exhausted), n_written, '/'.join(remaining))
    if annotator.unclipped:
        log.warning("%d barcode reads were shorter than the clip window and were used unclipped", annotator.unclipped)

    return AnnotationCounts(barcode=n_written, primary=n_written,
                            secondary=n_written if secondary_sink is not None else None)


# ==================
# ***  add_cell  ***
# ==================

DEFAULT_OPTIONS = {
    'from_char': None,
    'to_char': None,
    'recomp': False,
    'annotation_style': 'colon',
    'decompressor': 'pigz',
    'compressor': 'pigz',
    'threads': None,
    'out_dir': None,
}


def add_cell(cell, r1, r2=None, from_char=None, to_char=None, recomp=False,
             annotation_style='colon', decompressor='pigz', compressor='pigz',
             threads=None, out_dir=None):
    ''' Add the (clipped, optionally reverse-complemented) sequence of each
        barcode read in `cell` to the name of the matching read in `r1`, and
        in `r2` if given. Outputs are written next to the inputs (or into
        out_dir) as <name>_cells_added<suffix>, compressed if the suffix ends
        in .gz. Returns an AnnotationCounts.
    '''
    for strategy in (decompressor, compressor):
        if strategy not in COMPRESSION_STRATEGIES:
            raise ConfigurationError('unknown compression strategy {}, expected one of {}'.format(
                strategy, ', '.join(COMPRESSION_STRATEGIES)))
    annotator = BarcodeAnnotator(clip_start=from_char, clip_end=to_char,
                                 reverse_complement=recomp, style=annotation_style)

    # fail before touching any input if pigz is wanted but missing
    pigz = None
    if 'pigz' in (decompressor, compressor):
        pigz = cellbc.tools.pigz.Pigz()
        pigz.check_installed()
    decompress_cmd = pigz.decompress_cmd(threads) if decompressor == 'pigz' else None
    compress_cmd = pigz.compress_cmd(threads) if compressor == 'pigz' else None

    inputs = [cell, r1] + ([r2] if r2 else [])
    cellbc.util.cmd.check_input(len(set(inputs)) == len(inputs),
                                'barcode, R1 and R2 reads must be different files')
    outputs = [cellbc.util.file.cells_added_name(fn, out_dir) for fn in inputs[1:]]
    out_paths = [os.path.realpath(fn) for fn in outputs]
    if len(set(out_paths)) != len(out_paths):
        raise ConfigurationError('R1 and R2 reads would both be written to {}'.format(outputs[0]))
    clobbered = set(out_paths) & set(map(os.path.realpath, inputs))
    if clobbered:
        raise ConfigurationError('output would overwrite input file {}'.format(', '.join(sorted(clobbered))))
    if out_dir:
        cellbc.util.file.mkdir_p(out_dir)
    try:
        cellbc.util.file.check_paths(read=inputs, write=outputs)
    except OSError as e:
        raise ConfigurationError(str(e))

    with contextlib.ExitStack() as stack:
        # sources are entered last so they are shut down first
        sinks = [stack.enter_context(cellbc.util.file.open_writer(fn, compress_cmd)) for fn in outputs]
        reads = [cellbc.util.file.read_fastx(stack.enter_context(cellbc.util.file.open_reads(fn, decompress_cmd)))
                 for fn in inputs]
        log.info("adding cell barcodes from %s to %s", cell, ', '.join(inputs[1:]))
        counts = annotate_reads(reads[0], reads[1], sinks[0],
                                secondary_reads=reads[2] if r2 else None,
                                secondary_sink=sinks[1] if r2 else None,
                                annotator=annotator)

    for fn in outputs:
        log.info("wrote %d reads to %s", counts.primary, fn)
    return counts


def nonnegative_int(value):
    ivalue = int(value)
    if ivalue < 0:
        raise argparse.ArgumentTypeError('{} is not a non-negative integer'.format(value))
    return ivalue


def parser_add_cell(parser=argparse.ArgumentParser()):
    parser.add_argument('--cell', '-c', required=True, help='Barcode reads (fastq/fasta, optionally gzipped).')
    parser.add_argument('--r1', '-1', required=True, help='R1 reads to annotate.')
    parser.add_argument('--r2', '-2', default=None, help='R2 reads to annotate (optional).')
    parser.add_argument('--from-char', dest='from_char', type=nonnegative_int, default=None,
                        help='Start (0-based, inclusive) of the barcode within the barcode read.')
    parser.add_argument('--to-char', dest='to_char', type=nonnegative_int, default=None,
                        help='End (exclusive) of the barcode within the barcode read.')
    parser.add_argument('--recomp', action='store_true', default=None,
                        help='Reverse-complement the barcode before adding it.')
    parser.add_argument('--no-recomp', dest='recomp', action='store_false', default=None,
                        help='Add the barcode as read, overriding recomp: true in a --config file.')
    parser.add_argument('--annotationStyle', dest='annotation_style', choices=ANNOTATION_STYLES, default=None,
                        help='''How the barcode is added to read names: "colon" turns spaces in the name into
                        colons and appends ":BARCODE"; "description" appends " BARCODE". [default: colon]''')
    parser.add_argument('--decompressor', choices=COMPRESSION_STRATEGIES, default=None,
                        help='Decompress gzipped inputs with a pigz process or in-process gzip. [default: pigz]')
    parser.add_argument('--compressor', choices=COMPRESSION_STRATEGIES, default=None,
                        help='Compress .gz outputs with a pigz process or in-process gzip. [default: pigz]')
    parser.add_argument('--outDir', dest='out_dir', default=None,
                        help='Directory for output files. [default: next to each input]')
    parser.add_argument('--config', default=None,
                        help='''YAML or JSON file setting any of: {}.
                        Command line options take precedence.'''.format(', '.join(sorted(DEFAULT_OPTIONS))))
    cellbc.util.cmd.common_args(parser, (('threads', None), ('loglevel', None), ('version', None)))
    cellbc.util.cmd.attach_main(parser, main_add_cell)
    return parser


def resolve_options(args):
    '''Merge built-in defaults, the --config file and command line options, in increasing precedence.'''
    options = dict(DEFAULT_OPTIONS)
    if getattr(args, 'config', None):
        cfg = cellbc.util.misc.load_config(args.config)
        unknown = set(cfg) - set(DEFAULT_OPTIONS)
        if unknown:
            raise ConfigurationError('unrecognized config keys in {}: {}'.format(args.config, ', '.join(sorted(unknown))))
        options.update(cfg)
    for k in DEFAULT_OPTIONS:
        v = getattr(args, k, None)
        if v is not None:
            options[k] = v
    return options


def main_add_cell(args):
    '''Add cell barcodes from a barcode read file to the read names of R1 (and R2) reads.'''
    options = resolve_options(args)
    log.debug("resolved options: %s", options)
    add_cell(args.cell, args.r1, args.r2, **options)
    return 0

__commands__.append(('add_cell', parser_add_cell))


# ==========================
# ***  cells_added_name  ***
# ==========================


def main_cells_added_name(in_reads, out_dir=None):
    '''Print the output filename add_cell writes for a given read file.'''
    print(cellbc.util.file.cells_added_name(in_reads, out_dir))
    return 0


def parser_cells_added_name(parser=argparse.ArgumentParser()):
    parser.add_argument('in_reads', help='Input read file name.')
    parser.add_argument('--outDir', dest='out_dir', default=None, help='Output directory.')
    cellbc.util.cmd.common_args(parser, (('loglevel', 'WARNING'), ('version', None)))
    cellbc.util.cmd.attach_main(parser, main_cells_added_name, split_args=True)
    return parser

__commands__.append(('cells_added_name', parser_cells_added_name))


def main():
    '''Console entry point: add_cell without a subcommand.'''
    return cellbc.util.cmd.main_argparse([(None, parser_add_cell)], __doc__)


if __name__ == '__main__':
    sys.exit(cellbc.util.cmd.main_argparse(__commands__, __doc__))
