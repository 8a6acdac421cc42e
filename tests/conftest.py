#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Pytest configuration and shared fixtures.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import copy
import gzip
import os
import shutil
import tempfile
from pathlib import Path

import pytest

from draftweaver.config.schema import DEFAULT_CONFIG
from draftweaver.utils.resources import MachineInfo, build_budget
from draftweaver.utils.tool_runner import ToolRunner


FQCHK_REPORT = """min_len: 100; max_len: 151; avg_len: 150.00; 37 distinct quality values
POS\t#bases\t%A\t%C\t%G\t%T\t%N\tavgQ\terrQ\t%low\t%high
ALL\t1500000\t25.1\t24.9\t24.8\t25.2\t0.0\t36.1\t28.4\t2.3\t97.7
1\t10000\t24.0\t26.0\t25.0\t25.0\t0.0\t32.0\t30.0\t5.0\t95.0
"""

KMC_REPORT = """Stage 1: 100%
Stage 2: 100%
1st stage: 0.2s
2nd stage: 0.3s
Total    : 0.5s
Tmp size : 10MB

Stats:
   No. of k-mers below min. threshold :       120000
   No. of k-mers above max. threshold :            0
   No. of unique k-mers               :       125000
   No. of unique counted k-mers       :         5000
   Total no. of k-mers                :      1400000
"""

SPADES_CONTIGS = (
    ">NODE_1_length_12_cov_10.5\nACGTACGTACGT\n"
    ">NODE_2_length_8_cov_1.2\nGGGGCCCC\n"
    ">NODE_3_length_5_cov_30.0\nTTTAA\n"
)

FASTQ_RECORDS = "@r1\nACGTACGTAC\n+\nIIIIIIIIII\n@r2\nGGGGCCCCAA\n+\nIIIIIIIIII\n"


def _lighter_name(path: str, outdir: str) -> Path:
    name = Path(path).name
    gz = name.endswith('.gz')
    if gz:
        name = name[:-3]
    for ext in ('.fastq', '.fq'):
        if name.endswith(ext):
            name = name[:-len(ext)]
            break
    return Path(outdir) / f"{name}.cor.fq{'.gz' if gz else ''}"


class FakeToolRunner(ToolRunner):
    """
    ToolRunner that records calls and fabricates each tool's outputs
    instead of spawning processes.

    Attributes:
        fail_stage: Stage name that should exit non-zero
        pilon_changes: Lines written to Pilon's .changes file
    """

    def __init__(self, log_dir, fail_stage=None, pilon_changes=None,
                 contigs=SPADES_CONTIGS, fqchk=FQCHK_REPORT, kmc=KMC_REPORT, verbose=False):
        super().__init__(log_dir, verbose=verbose)
        self.fail_stage = fail_stage
        self.pilon_changes = pilon_changes or []
        self.contigs = contigs
        self.fqchk = fqchk
        self.kmc = kmc

    def tools_called(self):
        return [Path(call.commands[0][0]).name for call in self.history]

    def calls_for(self, stage):
        return [call for call in self.history if call.stage == stage]

    def _execute(self, call, log_handle, cwd):
        if call.stage == self.fail_stage:
            log_handle.write("simulated failure\n")
            return 1, "simulated failure\n"

        output = ''
        for argv in call.commands:
            output += self._fake(argv, call) or ''
        log_handle.write(output)
        return 0, output

    def _fake(self, argv, call):
        tool = Path(argv[0]).name
        args = argv[1:]

        if tool == 'seqtk' and args[0] == 'fqchk':
            return self.fqchk
        if tool == 'seqtk' and args[0] == 'sample':
            return None
        if tool == 'gzip':
            with gzip.open(call.stdout_path, 'wt') as handle:
                handle.write(FASTQ_RECORDS)
            return None
        if tool == 'kmc':
            prefix = Path(args[-2])
            for suffix in ('.kmc_pre', '.kmc_suf'):
                Path(f"{prefix}{suffix}").write_text('')
            return self.kmc
        if tool == 'trimmomatic':
            # PE -threads N -phred33 in1 in2 out1 unpaired1 out2 unpaired2 steps...
            Path(args[6]).write_text(FASTQ_RECORDS)
            Path(args[8]).write_text(FASTQ_RECORDS)
            return "TrimmomaticPE: Completed successfully\n"
        if tool == 'lighter':
            outdir = args[args.index('-od') + 1]
            for i, arg in enumerate(args):
                if arg == '-r':
                    _lighter_name(args[i + 1], outdir).write_text(FASTQ_RECORDS)
            return "Lighter finished\n"
        if tool == 'flash':
            outdir = Path(args[args.index('-d') + 1])
            prefix = args[args.index('-o') + 1]
            for name in ('extendedFrags', 'notCombined_1', 'notCombined_2'):
                (outdir / f"{prefix}.{name}.fastq.gz").write_text('')
            return "[FLASH] FLASH  completed successfully!\n"
        if tool == 'spades.py':
            outdir = Path(args[args.index('-o') + 1])
            outdir.mkdir(parents=True, exist_ok=True)
            for variant in ('before_rr', 'contigs', 'scaffolds'):
                (outdir / f"{variant}.fasta").write_text(self.contigs)
            (outdir / 'assembly_graph_with_scaffolds.gfa').write_text("H\tVN:Z:1.0\n")
            return "======= SPAdes pipeline finished.\n"
        if tool == 'bwa' and args[0] == 'index':
            for ext in ('.amb', '.ann', '.bwt', '.pac', '.sa'):
                Path(f"{args[-1]}{ext}").write_text('')
            return "[main] Real time: 0.1 sec\n"
        if tool == 'bwa' and args[0] == 'mem':
            return None
        if tool == 'samtools' and args[0] == 'sort':
            Path(args[args.index('-o') + 1]).write_text('BAM')
            return None
        if tool == 'samtools' and args[0] == 'index':
            Path(f"{args[-1]}.bai").write_text('')
            return None
        if tool == 'pilon':
            genome = Path(args[args.index('--genome') + 1])
            outdir = Path(args[args.index('--outdir') + 1])
            prefix = args[args.index('--output') + 1]
            polished = ''
            for line in genome.read_text().splitlines():
                polished += f"{line}_pilon\n" if line.startswith('>') else f"{line}\n"
            (outdir / f"{prefix}.fasta").write_text(polished)
            (outdir / f"{prefix}.changes").write_text(''.join(
                line + '\n' for line in self.pilon_changes))
            return "Finished processing\n"
        raise AssertionError(f"Unexpected tool call: {argv}")


@pytest.fixture
def temp_output_dir():
    """Create temporary output directory for tests."""
    temp_dir = tempfile.mkdtemp(prefix="draftweaver_test_")
    yield Path(temp_dir)
    # Cleanup after test
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def read_pair(temp_output_dir):
    """A tiny gzipped paired-end library."""
    reads_dir = temp_output_dir / 'reads'
    reads_dir.mkdir()
    paths = []
    for mate in ('R1', 'R2'):
        path = reads_dir / f"sample_{mate}.fastq.gz"
        with gzip.open(path, 'wt') as handle:
            handle.write(FASTQ_RECORDS)
        paths.append(path)
    return paths[0], paths[1]


@pytest.fixture
def machine():
    """A fixed 8-core, 64 GB host."""
    return MachineInfo(cores=8, total_ram_gb=64.0)


@pytest.fixture
def budget(machine, temp_output_dir):
    return build_budget(8, 16, str(temp_output_dir), machine=machine)


@pytest.fixture
def pipeline_config(read_pair, temp_output_dir):
    """Default configuration wired to the test reads."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    outdir = temp_output_dir / 'asm'
    outdir.mkdir()
    config['runtime'] = {
        'r1': str(read_pair[0]),
        'r2': str(read_pair[1]),
        'output_dir': str(outdir),
    }
    return config


@pytest.fixture
def simple_fasta():
    """Generate simple FASTA sequence for testing."""
    return ">test_sequence\nATCGATCGATCGATCGATCGATCGATCGATCG\n"


@pytest.fixture
def shell_available():
    if not os.path.exists('/bin/sh'):
        pytest.skip("requires a POSIX shell")

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
