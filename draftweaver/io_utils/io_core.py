#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Core I/O module for DraftWeaver.

Contains:
- ReadPair, the working reference to the two mate files
- gzip-aware file opening
- FASTA reading (wrap-agnostic) and writing (fixed-width wrap)
"""

import gzip
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, TextIO, Tuple, Union

from Bio.SeqIO.FastaIO import SimpleFastaParser


# =============================================================================
# READ FILE REFERENCES
# =============================================================================

@dataclass(frozen=True)
class ReadPair:
    """
    Paths to the two mates of a paired-end library.

    Attributes:
        r1: Forward reads (FASTQ, optionally gzipped)
        r2: Reverse reads (FASTQ, optionally gzipped)
    """
    r1: Path
    r2: Path

    def __iter__(self):
        return iter((self.r1, self.r2))


# =============================================================================
# FILE HANDLING
# =============================================================================

def is_gzipped(filepath: Union[str, Path]) -> bool:
    """
    Check if file is gzip compressed.

    Args:
        filepath: Path to file

    Returns:
        True if file is gzipped
    """
    filepath = Path(filepath)
    return filepath.suffix in ('.gz', '.gzip')


def open_file(filepath: Union[str, Path], mode: str = 'r') -> TextIO:
    """
    Open file with automatic gzip detection.

    Args:
        filepath: Path to file
        mode: File mode ('r' or 'w')

    Returns:
        File handle
    """
    filepath = Path(filepath)

    if is_gzipped(filepath):
        if 'r' in mode:
            return gzip.open(filepath, 'rt')
        else:
            return gzip.open(filepath, 'wt')
    else:
        return open(filepath, mode)


# =============================================================================
# FASTA FILE I/O
# =============================================================================

def iter_fasta(filepath: Union[str, Path]) -> Iterator[Tuple[str, str]]:
    """
    Yield (identifier, sequence) pairs from a FASTA file.

    The identifier is the header token up to the first whitespace; sequence
    lines are concatenated regardless of their wrap width.
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"FASTA file not found: {filepath}")

    with open_file(filepath) as handle:
        for title, sequence in SimpleFastaParser(handle):
            identifier = title.split(None, 1)[0] if title.strip() else ''
            yield identifier, sequence


def read_fasta(filepath: Union[str, Path]) -> Dict[str, str]:
    """
    Read a FASTA file into an ordered mapping of identifier -> sequence.

    Args:
        filepath: Path to FASTA file (can be gzipped)

    Returns:
        Dictionary preserving file order
    """
    return dict(iter_fasta(filepath))


def write_fasta(
    records: Iterable[Tuple[str, str]],
    filepath: Union[str, Path],
    line_width: int = 60
) -> int:
    """
    Write (header, sequence) pairs to a FASTA file.

    Args:
        records: Iterable of (header, sequence); header excludes the '>'
        filepath: Output FASTA file path
        line_width: Number of bases per line (0 = no wrapping)

    Returns:
        Number of sequences written
    """
    filepath = Path(filepath)

    # Create output directory if needed
    filepath.parent.mkdir(parents=True, exist_ok=True)

    count = 0

    with open_file(filepath, 'w') as handle:
        for header, sequence in records:
            handle.write(f">{header}\n")

            if line_width > 0:
                for i in range(0, len(sequence), line_width):
                    handle.write(sequence[i:i + line_width] + '\n')
            else:
                handle.write(sequence + '\n')

            count += 1

    return count
