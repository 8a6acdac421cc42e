#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
DraftWeaver v0.1.0

Tests for the pipeline orchestrator.

External tools are replaced by FakeToolRunner, which records each call and
writes the files the real tool would produce.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from pathlib import Path

import pytest
import yaml

from draftweaver.errors import ParseError, StageExecutionError, ValidationError
from draftweaver.io_utils import read_fasta
from draftweaver.utils.pipeline import (
    ArtifactStore,
    PipelineOrchestrator,
    Stage,
    next_stage,
    prepare_output_dir,
    validate_reads,
)

from conftest import FakeToolRunner


def _orchestrator(config, budget, **runner_kwargs):
    outdir = Path(config['runtime']['output_dir'])
    runner = FakeToolRunner(outdir, **runner_kwargs)
    return PipelineOrchestrator(config, runner=runner, budget=budget), runner


class TestStateMachine:
    """Test stage transitions."""

    def test_full_chain(self):
        stage, visited = Stage.PREPROCESS, []
        while stage != Stage.DONE:
            visited.append(stage)
            stage = next_stage(stage)
        assert visited == [Stage.PREPROCESS, Stage.CORRECT, Stage.OVERLAP,
                           Stage.ASSEMBLE, Stage.POLISH]

    def test_polish_skipped(self):
        assert next_stage(Stage.ASSEMBLE, polish=False) == Stage.DONE

    @pytest.mark.parametrize("stage", [Stage.DONE, Stage.FAILED])
    def test_terminal_states(self, stage):
        with pytest.raises(ValueError):
            next_stage(stage)


class TestArtifactStore:
    """Test artifact hand-off."""

    def test_put_and_get(self):
        store = ArtifactStore()
        store.put('combined', Path('/x/flash.extendedFrags.fastq.gz'), Stage.OVERLAP)

        artifact = store.get('combined')
        assert artifact.stage == Stage.OVERLAP
        assert store.path('combined').name == 'flash.extendedFrags.fastq.gz'
        assert 'combined' in store

    def test_missing_artifact(self):
        with pytest.raises(KeyError, match="assembly"):
            ArtifactStore().get('assembly')

    def test_replacement_keeps_history(self):
        store = ArtifactStore()
        store.put('assembly', Path('a.fasta'), Stage.ASSEMBLE)
        store.put('assembly', Path('b.fasta'), Stage.POLISH)

        assert store.path('assembly') == Path('b.fasta')
        assert [a.path for a in store.all()] == [Path('a.fasta'), Path('b.fasta')]


class TestOutputDir:
    """Test output directory preparation."""

    def test_created(self, temp_output_dir):
        outdir = prepare_output_dir(temp_output_dir / 'new' / 'asm')
        assert outdir.is_dir()

    def test_existing_without_force(self, temp_output_dir):
        with pytest.raises(ValidationError, match="--force"):
            prepare_output_dir(temp_output_dir)

    def test_existing_with_force(self, temp_output_dir):
        outdir = temp_output_dir / 'asm'
        outdir.mkdir()
        (outdir / 'old.txt').write_text('stale')

        prepare_output_dir(outdir, force=True)

        assert outdir.is_dir()
        assert list(outdir.iterdir()) == []


class TestValidateReads:
    """Test input read checks."""

    def test_valid_pair(self, read_pair):
        pair = validate_reads(*read_pair)
        assert pair.r1.name == 'sample_R1.fastq.gz'

    def test_missing_file(self, read_pair, temp_output_dir):
        with pytest.raises(ValidationError, match="R2"):
            validate_reads(read_pair[0], temp_output_dir / 'missing.fq')

    def test_same_file_twice(self, read_pair):
        with pytest.raises(ValidationError, match="same file"):
            validate_reads(read_pair[0], read_pair[0])

    def test_empty_file(self, read_pair, temp_output_dir):
        empty = temp_output_dir / 'empty.fq'
        empty.write_text('')
        with pytest.raises(ValidationError, match="empty"):
            validate_reads(read_pair[0], empty)


class TestPipelineRun:
    """Test complete runs against the fake tool chain."""

    def test_complete_run(self, pipeline_config, budget):
        """Test a default run: KMC estimate, subsampling, polishing, cleanup."""
        orchestrator, runner = _orchestrator(
            pipeline_config, budget,
            pilon_changes=["NODE_1_length_12_cov_10.5:3 NODE_1_length_12_cov_10.5_pilon:3 A G"],
        )
        outdir = orchestrator.output_dir

        result = orchestrator.run()

        assert result.state == Stage.DONE
        assert orchestrator.state == Stage.DONE
        assert result.completed_stages == ['preprocess', 'correct', 'overlap', 'assemble', 'polish']
        assert runner.tools_called() == [
            'seqtk', 'kmc', 'seqtk', 'seqtk', 'lighter', 'flash', 'spades.py',
            'bwa', 'bwa', 'samtools', 'pilon',
        ]

        params = result.parameters
        assert params.genome_size == 5000
        assert params.depth.original_depth == 600
        assert params.depth.sampling_factor == pytest.approx(0.25)
        assert params.kmers.kmers == (31, 51, 71, 91, 111)

        contigs = read_fasta(outdir / 'contigs.fa')
        assert list(contigs) == ['contig00001', 'contig00002']
        assert contigs['contig00001'] == 'ACGTACGTACGT'
        header = (outdir / 'contigs.fa').read_text().splitlines()[0]
        assert 'corr=1' in header
        assert 'origname=NODE_1_length_12_cov_10.5_pilon' in header
        assert result.contigs.dropped_low_coverage == 1

        assert (outdir / 'spades.prepolish.fasta').exists()
        assert (outdir / 'contigs.gfa').exists()
        assert result.graph_path == outdir / 'contigs.gfa'

        summary = yaml.safe_load((outdir / 'run_summary.yaml').read_text())
        assert summary['contigs']['contigs'] == 2
        assert summary['corrections'] == 1
        assert summary['stages'][-1] == 'polish'

    def test_stage_logs_numbered(self, pipeline_config, budget):
        orchestrator, _ = _orchestrator(pipeline_config, budget)
        orchestrator.run()

        logs = sorted(p.name for p in orchestrator.output_dir.glob('*.log'))
        assert logs == [
            '01_read_stats.log', '02_genome_size.log', '03_subsample.log',
            '04_correct.log', '05_overlap.log', '06_assemble.log', '07_polish.log',
        ]

    def test_intermediates_removed(self, pipeline_config, budget):
        orchestrator, _ = _orchestrator(pipeline_config, budget)
        outdir = orchestrator.output_dir

        orchestrator.run()

        for name in ('R1.cor.fq.gz', 'flash.extendedFrags.fastq.gz', 'R1.sub.fq.gz',
                     'R1.fq.gz', 'draftweaver.bam', 'spades', 'kmc_tmp', 'spades.fasta.bwt'):
            assert not (outdir / name).exists(), name
        assert (outdir / 'spades.fasta').exists()
        assert (outdir / 'pilon.changes').exists()

    def test_keepfiles(self, pipeline_config, budget):
        pipeline_config['output']['keepfiles'] = True
        orchestrator, _ = _orchestrator(pipeline_config, budget)

        orchestrator.run()

        assert (orchestrator.output_dir / 'R1.cor.fq.gz').exists()
        assert (orchestrator.output_dir / 'spades').is_dir()

    def test_polish_runs_on_uncorrected_reads(self, pipeline_config, budget):
        orchestrator, runner = _orchestrator(pipeline_config, budget)
        outdir = orchestrator.output_dir

        orchestrator.run()

        align = runner.calls_for('polish')[1]
        bwa_mem, sort = align.commands
        assert bwa_mem[-2:] == [str(outdir / 'R1.sub.fq.gz'), str(outdir / 'R2.sub.fq.gz')]
        assert sort[:5] == ['samtools', 'sort', '-@', '2', '-m']
        assert sort[5] == '2048M'

        pilon = runner.calls_for('polish')[-1]
        assert pilon.env == {'_JAVA_OPTIONS': '-Xmx16g'}
        assert '--changes' in pilon.commands[0]

    def test_assembler_arguments(self, pipeline_config, budget):
        pipeline_config['assembly']['opts'] = '--cov-cutoff auto'
        orchestrator, runner = _orchestrator(pipeline_config, budget)
        outdir = orchestrator.output_dir

        orchestrator.run()

        argv = runner.calls_for('assemble')[0].commands[0]
        assert argv[argv.index('--pe1-1') + 1] == str(outdir / 'flash.notCombined_1.fastq.gz')
        assert argv[argv.index('--pe1-m') + 1] == str(outdir / 'flash.extendedFrags.fastq.gz')
        assert argv[argv.index('-k') + 1] == '31,51,71,91,111'
        assert argv[argv.index('--threads') + 1] == '8'
        assert argv[argv.index('--memory') + 1] == '16'
        assert '--only-assembler' in argv
        assert argv[-2:] == ['--cov-cutoff', 'auto']

        flash = runner.calls_for('overlap')[0].commands[0]
        assert flash[1:5] == ['-m', '20', '-M', '151']

    def test_without_polishing(self, pipeline_config, budget):
        pipeline_config['polish']['enabled'] = False
        orchestrator, runner = _orchestrator(pipeline_config, budget)
        outdir = orchestrator.output_dir

        result = orchestrator.run()

        assert 'polish' not in result.completed_stages
        assert 'pilon' not in runner.tools_called()
        assert result.changes.total == 0
        assert not (outdir / 'spades.prepolish.fasta').exists()
        assert 'origname=NODE_1_length_12_cov_10.5 ' in (outdir / 'contigs.fa').read_text()

    def test_user_genome_size_and_no_subsampling(self, pipeline_config, budget, read_pair):
        pipeline_config['reads']['gsize'] = '5K'
        pipeline_config['reads']['depth'] = 0
        orchestrator, runner = _orchestrator(pipeline_config, budget)
        outdir = orchestrator.output_dir

        result = orchestrator.run()

        assert 'kmc' not in runner.tools_called()
        assert not result.parameters.depth.subsample
        assert result.parameters.reads.r1 == read_pair[0].resolve()
        # the user's reads are never cleaned up
        assert read_pair[0].exists() and read_pair[1].exists()
        assert not (outdir / '03_subsample.log').exists()

    def test_scaffolds_variant(self, pipeline_config, budget):
        pipeline_config['assembly']['variant'] = 'scaffolds'
        pipeline_config['output']['keepfiles'] = True
        orchestrator, _ = _orchestrator(pipeline_config, budget)

        orchestrator.run()

        assert orchestrator.artifacts.path('assembly') == orchestrator.output_dir / 'spades.fasta'

    def test_trimming(self, pipeline_config, budget, temp_output_dir):
        adapters = temp_output_dir / 'adapters.fa'
        adapters.write_text(">a\nAGATCGGAAGAGC\n")
        pipeline_config['reads']['trim'] = True
        pipeline_config['reads']['adapters'] = str(adapters)
        orchestrator, runner = _orchestrator(pipeline_config, budget)

        result = orchestrator.run()

        trim = runner.calls_for('preprocess')[0].commands[0]
        assert trim[:2] == ['trimmomatic', 'PE']
        assert f'ILLUMINACLIP:{adapters}:1:30:11' in trim
        assert trim[-1] == 'TOPHRED33'
        assert result.completed_stages[0] == 'preprocess'

    def test_user_trim_options_follow_defaults(self, pipeline_config, budget, temp_output_dir):
        adapters = temp_output_dir / 'adapters.fa'
        adapters.write_text(">a\nAGATCGGAAGAGC\n")
        pipeline_config['reads']['trim'] = True
        pipeline_config['reads']['adapters'] = str(adapters)
        pipeline_config['reads']['trim_opts'] = 'SLIDINGWINDOW:4:20 CROP:140'
        orchestrator, runner = _orchestrator(pipeline_config, budget)

        orchestrator.run()

        trim = runner.calls_for('preprocess')[0].commands[0]
        assert trim[-6:] == ['LEADING:3', 'TRAILING:3', 'MINLEN:30', 'TOPHRED33',
                             'SLIDINGWINDOW:4:20', 'CROP:140']
        assert f'ILLUMINACLIP:{adapters}:1:30:11' in trim


class TestPipelineFailures:
    """Test fail-fast behavior."""

    def test_stage_failure_aborts(self, pipeline_config, budget):
        orchestrator, runner = _orchestrator(pipeline_config, budget, fail_stage='overlap')

        with pytest.raises(StageExecutionError) as excinfo:
            orchestrator.run()

        assert excinfo.value.stage == 'overlap'
        assert orchestrator.state == Stage.FAILED
        assert orchestrator.failed_stage == Stage.OVERLAP
        assert orchestrator.completed_stages == ['preprocess', 'correct']
        assert 'spades.py' not in runner.tools_called()

    def test_polish_failure(self, pipeline_config, budget):
        orchestrator, _ = _orchestrator(pipeline_config, budget, fail_stage='polish')

        with pytest.raises(StageExecutionError):
            orchestrator.run()

        assert orchestrator.failed_stage == Stage.POLISH
        assert not (orchestrator.output_dir / 'contigs.fa').exists()

    def test_unparsable_read_stats(self, pipeline_config, budget):
        orchestrator, runner = _orchestrator(pipeline_config, budget, fqchk="nothing useful\n")

        with pytest.raises(ParseError):
            orchestrator.run()

        assert orchestrator.state == Stage.FAILED
        assert orchestrator.failed_stage == Stage.PREPROCESS
        assert runner.tools_called() == ['seqtk']

    def test_empty_assembly(self, pipeline_config, budget):
        orchestrator, _ = _orchestrator(pipeline_config, budget, contigs='')

        with pytest.raises(ParseError, match="contigs.fasta"):
            orchestrator.run()

        assert orchestrator.failed_stage == Stage.ASSEMBLE

    def test_reads_too_short_for_kmers(self, pipeline_config, budget):
        report = "min_len: 20; max_len: 20; avg_len: 20.00;\nALL\t1500000\n"
        orchestrator, runner = _orchestrator(pipeline_config, budget, fqchk=report)

        with pytest.raises(ValidationError, match="too short"):
            orchestrator.run()

        assert 'lighter' not in runner.tools_called()

    def test_missing_reads_rejected_at_startup(self, pipeline_config, budget, temp_output_dir):
        pipeline_config['runtime']['r2'] = str(temp_output_dir / 'nope.fq.gz')

        with pytest.raises(ValidationError):
            PipelineOrchestrator(pipeline_config, runner=FakeToolRunner(temp_output_dir), budget=budget)

# DraftWeaver v0.1.0
# Any usage is subject to this software's license.
