"""
DraftWeaver v0.1.0

I/O Module for DraftWeaver.

1. io_core.py - Read pair references, gzip-aware opening, FASTA I/O
"""

from .io_core import (
    ReadPair,
    is_gzipped,
    open_file,
    iter_fasta,
    read_fasta,
    write_fasta,
)

__all__ = [
    "ReadPair",
    "is_gzipped",
    "open_file",
    "iter_fasta",
    "read_fasta",
    "write_fasta",
]
