"""
cellbc: annotate sequencing reads with cell barcodes.

Cell barcodes are read from a dedicated barcode read file, optionally clipped
and reverse-complemented, and spliced into the read names of the matching
R1 (and R2) reads:
    import cellbc.read_utils
    import cellbc.util.file
    import cellbc.tools.pigz
"""

try:
    from importlib.metadata import version, PackageNotFoundError
    try:
        __version__ = version("cellbc")
    except PackageNotFoundError:
        __version__ = "0.0.0.dev0"
except ImportError:
    __version__ = "0.0.0.dev0"
