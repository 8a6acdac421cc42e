#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Master Pipeline Orchestrator.

Coordinates a complete draft assembly run:
- Parameter derivation: read statistics, genome size, depth reduction, k-mers
- Staged tool chain: PREPROCESS → CORRECT → OVERLAP → ASSEMBLE → [POLISH] → DONE
- Finishing: contig filtering/renaming, graph export, run summary

Stages run strictly in order. Each stage reads its inputs from the
ArtifactStore and registers the files it produces there, so the hand-off
between stages is explicit. The first failing stage moves the run to
FAILED and the error propagates to the caller; nothing is retried.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import logging
import os
import shlex
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..assembly_utils import ChangeLog, ContigSummary, export_assembly_graph, finalize_contigs, read_changes
from ..config.schema import FLASH_MIN_OVERLAP, LIGHTER_KMER, LIGHTER_MAX_CORRECTIONS, TRIM_STEPS
from ..errors import DraftWeaverError, ParseError, ValidationError
from ..io_utils import ReadPair, is_gzipped
from ..preprocessing import (
    DepthPlan,
    KmerPlan,
    ReadStatSummary,
    apply_depth_plan,
    compute_read_stats,
    plan_depth,
    resolve_genome_size,
    select_kmers,
)
from ..version import __version__
from .resources import ResourceBudget, build_budget
from .tool_runner import ToolRunner


# ============================================================================
# State machine
# ============================================================================

class Stage(Enum):
    """Pipeline states."""
    PREPROCESS = 'preprocess'
    CORRECT = 'correct'
    OVERLAP = 'overlap'
    ASSEMBLE = 'assemble'
    POLISH = 'polish'
    DONE = 'done'
    FAILED = 'failed'


def next_stage(stage: Stage, polish: bool = True) -> Stage:
    """Transition function; POLISH is skipped when polishing is disabled."""
    if stage == Stage.PREPROCESS:
        return Stage.CORRECT
    if stage == Stage.CORRECT:
        return Stage.OVERLAP
    if stage == Stage.OVERLAP:
        return Stage.ASSEMBLE
    if stage == Stage.ASSEMBLE:
        return Stage.POLISH if polish else Stage.DONE
    if stage == Stage.POLISH:
        return Stage.DONE
    raise ValueError(f"No transition out of terminal state {stage.name}")


@dataclass(frozen=True)
class StageArtifact:
    """
    A file produced by one stage and consumed by a later one.

    Attributes:
        name: Logical name (e.g. 'corrected_r1')
        path: File location
        stage: Producing stage
        intermediate: Removed at the end of the run unless files are kept
    """
    name: str
    path: Path
    stage: Stage
    intermediate: bool = True


class ArtifactStore:
    """Registry of stage artifacts by logical name (later entries replace earlier)."""

    def __init__(self):
        self._artifacts: Dict[str, StageArtifact] = {}
        self._retired: List[StageArtifact] = []

    def put(self, name: str, path: Path, stage: Stage, intermediate: bool = True) -> StageArtifact:
        if name in self._artifacts:
            self._retired.append(self._artifacts[name])
        artifact = StageArtifact(name=name, path=Path(path), stage=stage, intermediate=intermediate)
        self._artifacts[name] = artifact
        return artifact

    def get(self, name: str) -> StageArtifact:
        try:
            return self._artifacts[name]
        except KeyError:
            raise KeyError(f"No artifact named '{name}' has been produced yet") from None

    def path(self, name: str) -> Path:
        return self.get(name).path

    def __contains__(self, name: str) -> bool:
        return name in self._artifacts

    def all(self) -> List[StageArtifact]:
        """Current and superseded artifacts."""
        return self._retired + list(self._artifacts.values())

    def to_dict(self) -> Dict[str, str]:
        return {name: str(a.path) for name, a in self._artifacts.items()}


# ============================================================================
# Run data
# ============================================================================

@dataclass
class RunParameters:
    """Parameters derived from the reads before the tool chain starts."""
    stats: ReadStatSummary
    genome_size: int
    depth: DepthPlan
    kmers: KmerPlan
    reads: ReadPair

    def to_dict(self) -> Dict[str, Any]:
        return {
            'read_stats': {
                'min_len': self.stats.min_len,
                'max_len': self.stats.max_len,
                'avg_len': self.stats.avg_len,
                'total_bp': self.stats.total_bp,
            },
            'genome_size': self.genome_size,
            'depth': {
                'original': self.depth.original_depth,
                'target': self.depth.target_depth,
                'sampling_factor': self.depth.sampling_factor,
            },
            'kmers': list(self.kmers.kmers),
            'reads': [str(self.reads.r1), str(self.reads.r2)],
        }


@dataclass
class PipelineResult:
    """Outcome of a completed run."""
    state: Stage
    parameters: RunParameters
    artifacts: Dict[str, str]
    changes: ChangeLog
    contigs: ContigSummary
    contigs_path: Path
    graph_path: Optional[Path] = None
    completed_stages: List[str] = field(default_factory=list)


# ============================================================================
# Output directory and input checks
# ============================================================================

def prepare_output_dir(outdir: Path, force: bool = False) -> Path:
    """
    Create the output directory.

    Raises:
        ValidationError: If it already exists and force is not set
    """
    outdir = Path(outdir)
    if outdir.exists():
        if not force:
            raise ValidationError(f"Output directory {outdir} already exists; use --force to overwrite it")
        logging.getLogger(__name__).info(f"Removing existing output directory {outdir}")
        if outdir.is_dir() and not outdir.is_symlink():
            shutil.rmtree(outdir)
        else:
            outdir.unlink()
    outdir.mkdir(parents=True)
    return outdir


def validate_reads(r1: Path, r2: Path) -> ReadPair:
    """Check both read files are readable, non-empty and distinct."""
    pair = ReadPair(r1=Path(r1).resolve(), r2=Path(r2).resolve())
    for label, path in (('R1', pair.r1), ('R2', pair.r2)):
        if not path.is_file() or not os.access(path, os.R_OK):
            raise ValidationError(f"Can't read {label} file: {path}")
        if path.stat().st_size == 0:
            raise ValidationError(f"{label} file is empty: {path}")
    if pair.r1 == pair.r2:
        raise ValidationError(f"R1 and R2 are the same file: {pair.r1}")
    return pair


def _read_suffix(path: Path) -> str:
    return '.fq.gz' if is_gzipped(path) else '.fq'


def _lighter_output(path: Path, outdir: Path) -> Path:
    """Lighter names corrected reads <prefix>.cor.fq[.gz] after the input's prefix."""
    name = path.name
    gz = name.endswith('.gz')
    if gz:
        name = name[:-3]
    for ext in ('.fastq', '.fq'):
        if name.endswith(ext):
            name = name[:-len(ext)]
            break
    return outdir / f"{name}.cor.fq{'.gz' if gz else ''}"


# ============================================================================
# Master Pipeline Orchestrator
# ============================================================================

class PipelineOrchestrator:
    """
    Master orchestrator for a DraftWeaver run.

    Manages:
    - Parameter derivation (read stats, genome size, depth, k-mers)
    - Tool stages with explicit artifact hand-off
    - Contig finishing, graph export and the run summary
    """

    def __init__(
        self,
        config: Dict[str, Any],
        runner: Optional[ToolRunner] = None,
        budget: Optional[ResourceBudget] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            config: Pipeline configuration (with a 'runtime' section holding
                    'r1', 'r2' and 'output_dir')
            runner: Tool runner (default: one logging into the output dir)
            budget: Resource budget (default: computed from config)
            logger: Logger receiving progress messages
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.output_dir = Path(config['runtime']['output_dir'])
        self.tools = config['tools']

        self.runner = runner or ToolRunner(self.output_dir, verbose=config['output']['verbose'])
        self.budget = budget or build_budget(
            config['resources']['cpus'],
            config['resources']['ram_gb'],
            config['resources']['tmpdir'],
        )

        self.input_reads = validate_reads(config['runtime']['r1'], config['runtime']['r2'])
        self.polish_enabled = bool(config['polish']['enabled'])

        self.state = Stage.PREPROCESS
        self.failed_stage: Optional[Stage] = None
        self.completed_stages: List[str] = []
        self.artifacts = ArtifactStore()
        self.parameters: Optional[RunParameters] = None

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self) -> PipelineResult:
        """
        Derive parameters, run every stage, then finish the contigs.

        Raises:
            DraftWeaverError: On the first validation, parse or stage failure
        """
        self.logger.info("=" * 60)
        self.logger.info(f"Starting DraftWeaver v{__version__}")
        self.logger.info("=" * 60)

        handlers = {
            Stage.PREPROCESS: self._step_preprocess,
            Stage.CORRECT: self._step_correct,
            Stage.OVERLAP: self._step_overlap,
            Stage.ASSEMBLE: self._step_assemble,
            Stage.POLISH: self._step_polish,
        }

        self.state = Stage.PREPROCESS
        try:
            self.parameters = self.derive_parameters()

            while True:
                stage = self.state
                self.logger.info(f"--- Stage: {stage.value.upper()} ---")
                handlers[stage]()
                self.completed_stages.append(stage.value)

                following = next_stage(stage, polish=self.polish_enabled)
                if following == Stage.DONE:
                    break
                self.state = following

            if not self.polish_enabled:
                self.logger.info("Polishing disabled; skipping Pilon")

            # Output problems are charged to the stage that produced the assembly
            result = self._finish()
        except DraftWeaverError:
            self.failed_stage = self.state
            self.state = Stage.FAILED
            self.logger.error(f"Run failed during stage {self.failed_stage.value}")
            raise

        self.state = Stage.DONE
        result.state = Stage.DONE

        if not self.config['output']['keepfiles']:
            self._cleanup()

        self.logger.info("=" * 60)
        self.logger.info("Pipeline Complete!")
        self.logger.info("=" * 60)
        return result

    def _run_stage(self, argv, **kwargs) -> str:
        return self.runner.run(self.state.value, argv, **kwargs)

    # ------------------------------------------------------------------
    # Parameter derivation
    # ------------------------------------------------------------------

    def derive_parameters(self) -> RunParameters:
        """Read stats → genome size → depth plan (maybe subsample) → k-mers."""
        reads = self.input_reads
        stats = compute_read_stats(reads.r1, self.runner, seqtk=self.tools['seqtk'])

        genome_size = resolve_genome_size(
            self.config['reads']['gsize'], reads.r1, self.runner, self.output_dir,
            threads=self.budget.cpus, ram_gb=self.budget.ram_gb, kmc=self.tools['kmc'],
        )
        if not self.config['reads']['gsize']:
            self.artifacts.put('kmc_tmp', self.output_dir / 'kmc_tmp', Stage.PREPROCESS)
            for suffix in ('.kmc_pre', '.kmc_suf'):
                self.artifacts.put(f'kmc{suffix}', self.output_dir / f'kmc{suffix}', Stage.PREPROCESS)

        depth = plan_depth(stats.total_bp, genome_size, self.config['reads']['depth'])
        working = apply_depth_plan(depth, reads, self.runner, self.output_dir, seqtk=self.tools['seqtk'])
        if depth.subsample:
            self.artifacts.put('subsampled_r1', working.r1, Stage.PREPROCESS)
            self.artifacts.put('subsampled_r2', working.r2, Stage.PREPROCESS)

        kmers = select_kmers(
            self.config['kmers']['list'], stats.avg_len,
            min_k=self.config['kmers']['min_k'], max_k=self.config['kmers']['max_k'],
        )

        self.artifacts.put('input_r1', working.r1, Stage.PREPROCESS, intermediate=False)
        self.artifacts.put('input_r2', working.r2, Stage.PREPROCESS, intermediate=False)

        return RunParameters(stats=stats, genome_size=genome_size, depth=depth,
                             kmers=kmers, reads=working)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _step_preprocess(self):
        """Trim adapters, or link the input reads under canonical names."""
        source = ReadPair(self.artifacts.path('input_r1'), self.artifacts.path('input_r2'))
        reads_cfg = self.config['reads']

        if reads_cfg['trim']:
            r1 = self.output_dir / 'R1.fq.gz'
            r2 = self.output_dir / 'R2.fq.gz'
            steps = [step.replace('{adapters}', str(reads_cfg['adapters'])) for step in TRIM_STEPS.split()]
            steps += shlex.split(reads_cfg['trim_opts'] or '')
            self.logger.info(f"Trimming reads: {' '.join(steps)}")
            self._run_stage([
                self.tools['trimmomatic'], 'PE', '-threads', str(self.budget.cpus), '-phred33',
                str(source.r1), str(source.r2),
                str(r1), os.devnull, str(r2), os.devnull,
                *steps,
            ])
        else:
            r1 = self.output_dir / f"R1{_read_suffix(source.r1)}"
            r2 = self.output_dir / f"R2{_read_suffix(source.r2)}"
            for src, link in ((source.r1, r1), (source.r2, r2)):
                self.logger.info(f"Linking {link.name} -> {src}")
                if link.is_symlink() or link.exists():
                    link.unlink()
                link.symlink_to(src.resolve())

        self.artifacts.put('reads_r1', r1, Stage.PREPROCESS)
        self.artifacts.put('reads_r2', r2, Stage.PREPROCESS)

    def _step_correct(self):
        """Correct sequencing errors with Lighter (one correction per read)."""
        r1 = self.artifacts.path('reads_r1')
        r2 = self.artifacts.path('reads_r2')
        self.logger.info("Correcting reads with Lighter")
        self._run_stage([
            self.tools['lighter'], '-od', str(self.output_dir),
            '-r', str(r1), '-r', str(r2),
            '-K', str(LIGHTER_KMER), str(self.parameters.genome_size),
            '-t', str(self.budget.cpus), '-maxcor', str(LIGHTER_MAX_CORRECTIONS),
        ])
        self.artifacts.put('corrected_r1', _lighter_output(r1, self.output_dir), Stage.CORRECT)
        self.artifacts.put('corrected_r2', _lighter_output(r2, self.output_dir), Stage.CORRECT)

    def _step_overlap(self):
        """Stitch overlapping pairs with FLASH."""
        max_overlap = self.parameters.stats.max_len
        self.logger.info(f"Overlapping read pairs with FLASH (overlap {FLASH_MIN_OVERLAP}-{max_overlap} bp)")
        self._run_stage([
            self.tools['flash'], '-m', str(FLASH_MIN_OVERLAP), '-M', str(max_overlap),
            '-d', str(self.output_dir), '-o', 'flash', '-z', '-t', str(self.budget.cpus),
            str(self.artifacts.path('corrected_r1')), str(self.artifacts.path('corrected_r2')),
        ])
        self.artifacts.put('combined', self.output_dir / 'flash.extendedFrags.fastq.gz', Stage.OVERLAP)
        self.artifacts.put('not_combined_r1', self.output_dir / 'flash.notCombined_1.fastq.gz', Stage.OVERLAP)
        self.artifacts.put('not_combined_r2', self.output_dir / 'flash.notCombined_2.fastq.gz', Stage.OVERLAP)

    def _step_assemble(self):
        """Assemble with SPAdes in assembler-only mode."""
        spades_dir = self.output_dir / 'spades'
        variant = self.config['assembly']['variant']
        opts = shlex.split(self.config['assembly']['opts'] or '')

        self.logger.info(f"Assembling with SPAdes (k={self.parameters.kmers.as_argument()})")
        self._run_stage([
            self.tools['spades'],
            '--pe1-1', str(self.artifacts.path('not_combined_r1')),
            '--pe1-2', str(self.artifacts.path('not_combined_r2')),
            '--pe1-m', str(self.artifacts.path('combined')),
            '--only-assembler',
            '--threads', str(self.budget.cpus),
            '--memory', str(self.budget.ram_gb),
            '--tmp-dir', str(self.budget.tmpdir),
            '-o', str(spades_dir),
            '-k', self.parameters.kmers.as_argument(),
            *opts,
        ])
        self.artifacts.put('spades_dir', spades_dir, Stage.ASSEMBLE)

        produced = spades_dir / f"{variant}.fasta"
        if not produced.exists() or produced.stat().st_size == 0:
            raise ParseError(f"SPAdes produced no {variant}.fasta in {spades_dir}")

        assembly = self.output_dir / 'spades.fasta'
        shutil.copyfile(produced, assembly)
        self.artifacts.put('assembly', assembly, Stage.ASSEMBLE, intermediate=False)

        for graph_name in ('assembly_graph_with_scaffolds.gfa', 'assembly_graph.fastg'):
            graph = spades_dir / graph_name
            if graph.exists():
                self.artifacts.put('assembly_graph', graph, Stage.ASSEMBLE)
                break

    def _step_polish(self):
        """Map the uncorrected reads back and polish with Pilon."""
        assembly = self.artifacts.path('assembly')
        bam = self.output_dir / 'draftweaver.bam'
        bwa, samtools = self.tools['bwa'], self.tools['samtools']

        self.logger.info("Indexing assembly")
        self._run_stage([bwa, 'index', str(assembly)])
        for ext in ('.amb', '.ann', '.bwt', '.pac', '.sa'):
            self.artifacts.put(f'bwa_index{ext}', Path(f"{assembly}{ext}"), Stage.POLISH)

        self.logger.info("Aligning reads to assembly")
        self._run_stage([
            [bwa, 'mem', '-v', '3', '-t', str(self.budget.cpus), str(assembly),
             str(self.artifacts.path('input_r1')), str(self.artifacts.path('input_r2'))],
            [samtools, 'sort', '-@', str(self.budget.helper_cpus),
             '-m', f'{self.budget.helper_mem_mb}M',
             '-T', str(self.budget.tmpdir / 'draftweaver'),
             '-o', str(bam), '-'],
        ])
        self._run_stage([samtools, 'index', str(bam)])
        self.artifacts.put('alignment', bam, Stage.POLISH)
        self.artifacts.put('alignment_index', Path(f"{bam}.bai"), Stage.POLISH)

        polish_cfg = self.config['polish']
        self.logger.info("Correcting assembly with Pilon")
        self._run_stage([
            self.tools['pilon'], '--genome', str(assembly), '--frags', str(bam),
            '--outdir', str(self.output_dir), '--output', 'pilon',
            '--threads', str(self.budget.cpus), '--changes',
            '--fix', str(polish_cfg['fix']), '--mindepth', str(polish_cfg['mindepth']),
        ], env={'_JAVA_OPTIONS': f'-Xmx{self.budget.ram_gb}g'})

        polished = self.output_dir / 'pilon.fasta'
        changes = self.output_dir / 'pilon.changes'
        if not polished.exists():
            raise ParseError(f"Pilon produced no {polished.name}")

        backup = self.output_dir / 'spades.prepolish.fasta'
        assembly.rename(backup)
        polished.rename(assembly)
        self.artifacts.put('prepolish_assembly', backup, Stage.POLISH, intermediate=False)
        self.artifacts.put('assembly', assembly, Stage.POLISH, intermediate=False)
        self.artifacts.put('changes', changes, Stage.POLISH, intermediate=False)

    # ------------------------------------------------------------------
    # Finishing
    # ------------------------------------------------------------------

    def _finish(self) -> PipelineResult:
        """Filter and rename contigs, export the graph, write the run summary."""
        out_cfg = self.config['output']
        contigs_cfg = self.config['contigs']

        changes = read_changes(self.artifacts.path('changes') if 'changes' in self.artifacts else None)

        contigs_path = self.output_dir / out_cfg['contigs_file']
        summary = finalize_contigs(
            self.artifacts.path('assembly'), changes, contigs_path,
            min_len=contigs_cfg['min_length'],
            min_cov=contigs_cfg['min_coverage'],
            name_format=contigs_cfg['name_format'],
        )

        graph = self.artifacts.path('assembly_graph') if 'assembly_graph' in self.artifacts else None
        graph_path = export_assembly_graph(graph, self.output_dir, out_cfg['graph_name'])

        result = PipelineResult(
            state=self.state,
            parameters=self.parameters,
            artifacts=self.artifacts.to_dict(),
            changes=changes,
            contigs=summary,
            contigs_path=contigs_path,
            graph_path=graph_path,
            completed_stages=list(self.completed_stages),
        )
        self._write_summary(result)
        return result

    def _write_summary(self, result: PipelineResult):
        summary_path = self.output_dir / self.config['output']['summary_file']
        data = {
            'draftweaver': __version__,
            'finished': datetime.now().isoformat(timespec='seconds'),
            'inputs': {'r1': str(self.input_reads.r1), 'r2': str(self.input_reads.r2)},
            'resources': {
                'cpus': self.budget.cpus,
                'ram_gb': self.budget.ram_gb,
                'helper_cpus': self.budget.helper_cpus,
                'helper_mem_mb': self.budget.helper_mem_mb,
            },
            'parameters': result.parameters.to_dict(),
            'stages': result.completed_stages,
            'corrections': result.changes.total,
            'contigs': result.contigs.to_dict(),
            'outputs': {
                'contigs': str(result.contigs_path),
                'graph': str(result.graph_path) if result.graph_path else None,
            },
        }
        with open(summary_path, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        self.logger.info(f"Run summary: {summary_path}")

    def _cleanup(self):
        """Remove intermediate artifacts that nothing downstream needs."""
        for artifact in self.artifacts.all():
            if not artifact.intermediate:
                continue
            path = artifact.path
            if path.is_symlink() or path.is_file():
                self.logger.debug(f"Deleting {path}")
                path.unlink()
            elif path.is_dir():
                self.logger.debug(f"Deleting directory {path}")
                shutil.rmtree(path)

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
