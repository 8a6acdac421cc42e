"""
DraftWeaver v0.1.0

Preprocessing module for DraftWeaver.

Derives run parameters from measured read statistics:
- read_stats.py - read length / yield summary (seqtk fqchk)
- genome_size.py - user genome size or KMC estimate
- depth.py - depth estimate and subsampling (seqtk sample)
- kmer_selection.py - assembler k-mer list
"""

from .read_stats import ReadStatSummary, parse_fqchk_report, compute_read_stats
from .genome_size import (
    parse_genome_size,
    parse_kmc_summary,
    estimate_genome_size,
    resolve_genome_size,
)
from .depth import DepthPlan, plan_depth, apply_depth_plan
from .kmer_selection import (
    KmerPlan,
    parse_kmer_list,
    kmer_step,
    auto_kmer_list,
    select_kmers,
)

__all__ = [
    # Read statistics
    "ReadStatSummary",
    "parse_fqchk_report",
    "compute_read_stats",
    # Genome size
    "parse_genome_size",
    "parse_kmc_summary",
    "estimate_genome_size",
    "resolve_genome_size",
    # Depth
    "DepthPlan",
    "plan_depth",
    "apply_depth_plan",
    # K-mers
    "KmerPlan",
    "parse_kmer_list",
    "kmer_step",
    "auto_kmer_list",
    "select_kmers",
]
