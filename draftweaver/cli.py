#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command-line interface for DraftWeaver.

This module provides the main CLI entry point and all subcommands for
the DraftWeaver draft assembly pipeline.
"""

import shutil
import sys
import click
from pathlib import Path
import yaml

from .version import __version__
from .config.schema import ASSEMBLY_VARIANTS, load_config, save_config_template, validate_config
from .errors import DraftWeaverError


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, verbose, quiet):
    """
    DraftWeaver: draft bacterial genome assembly from paired-end Illumina reads.

    Wraps read statistics, depth reduction, error correction, read stitching,
    SPAdes assembly and Pilon polishing into a single command.
    """
    # Ensure context object exists
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet


# ============================================================================
# Configuration Management Commands
# ============================================================================

@main.group()
def config():
    """Configuration management commands."""
    pass


@config.command('init')
@click.option('--output', '-o', type=click.Path(), default='draftweaver_config.yaml',
              help='Output configuration file path')
def config_init(output):
    """Generate a template configuration file with all available parameters."""
    click.echo(f"Generating configuration template: {output}")

    try:
        save_config_template(Path(output))
        click.echo(f"✓ Configuration file created: {output}")
        click.echo("\nThe configuration file includes:")
        click.echo("  • CPU / memory ceilings and scratch directory")
        click.echo("  • Depth, genome size, trimming and k-mer settings")
        click.echo("  • Assembly variant, polishing and contig filters")
        click.echo("  • External tool executables")
        click.echo("\nEdit this file and pass it to 'draftweaver run --config'.")
    except OSError as e:
        click.echo(f"✗ Error creating configuration: {e}", err=True)
        sys.exit(1)


@config.command('validate')
@click.argument('config_file', type=click.Path(exists=True))
def config_validate(config_file):
    """Validate a configuration file."""
    click.echo(f"Validating configuration file: {config_file}")

    try:
        config = load_config(Path(config_file))
    except (OSError, yaml.YAMLError) as e:
        click.echo(f"✗ Error reading configuration: {e}", err=True)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        click.echo("\n✗ Configuration validation failed:")
        for error in errors:
            click.echo(f"  • {error}", err=True)
        sys.exit(1)

    click.echo("✓ Configuration is valid")

    # Show key settings
    click.echo("\nKey Settings:")
    click.echo(f"  Resources: {config['resources']['cpus'] or 'all'} CPUs, {config['resources']['ram_gb']} GB RAM")
    click.echo(f"  Target depth: {config['reads']['depth'] or 'no subsampling'}")
    click.echo(f"  Assembly variant: {config['assembly']['variant']}")
    click.echo(f"  Polishing: {'ENABLED' if config['polish']['enabled'] else 'DISABLED'}")


@config.command('show')
@click.argument('config_file', type=click.Path(exists=True))
@click.option('--format', '-f', type=click.Choice(['yaml', 'summary']), default='summary',
              help='Output format')
def config_show(config_file, format):
    """Display configuration settings."""
    try:
        config = load_config(Path(config_file))
    except (OSError, yaml.YAMLError) as e:
        click.echo(f"✗ Error reading configuration: {e}", err=True)
        sys.exit(1)

    if format == 'yaml':
        click.echo(yaml.dump(config, default_flow_style=False, sort_keys=False))
        return

    click.echo(f"Configuration from: {config_file}")
    click.echo("=" * 60)

    click.echo("\nResources:")
    click.echo(f"  CPUs: {config['resources']['cpus'] or 'all'}")
    click.echo(f"  RAM: {config['resources']['ram_gb']} GB")
    click.echo(f"  Tmpdir: {config['resources']['tmpdir'] or 'system default'}")

    click.echo("\nReads:")
    click.echo(f"  Target depth: {config['reads']['depth']}")
    click.echo(f"  Genome size: {config['reads']['gsize'] or 'estimate'}")
    click.echo(f"  Trimming: {config['reads']['trim']}")
    click.echo(f"  K-mers: {config['kmers']['list'] or 'auto'}")

    click.echo("\nAssembly:")
    click.echo(f"  Variant: {config['assembly']['variant']}")
    click.echo(f"  Extra SPAdes options: {config['assembly']['opts'] or '-'}")
    click.echo(f"  Polishing: {config['polish']['enabled']}")

    click.echo("\nContigs:")
    click.echo(f"  Min length: {config['contigs']['min_length']}")
    click.echo(f"  Min coverage: {config['contigs']['min_coverage']}")
    click.echo(f"  Name format: {config['contigs']['name_format']}")


# ============================================================================
# Main Pipeline Command
# ============================================================================

@main.command()
@click.option('--R1', 'r1', required=True, type=click.Path(),
              help='Forward reads (FASTQ, optionally gzipped)')
@click.option('--R2', 'r2', required=True, type=click.Path(),
              help='Reverse reads (FASTQ, optionally gzipped)')
@click.option('--outdir', '-o', required=True, type=click.Path(),
              help='Output directory')
@click.option('--config', '-c', 'config_file', type=click.Path(),
              help='Configuration file (YAML); command-line options take precedence')
# ============================================================================
# Resources
# ============================================================================
@click.option('--cpus', type=int, default=None,
              help='Number of CPUs to use (0 = all cores)')
@click.option('--ram', type=float, default=None,
              help='Memory ceiling in GB')
@click.option('--tmpdir', type=click.Path(),
              help='Fast temporary directory')
# ============================================================================
# Read handling
# ============================================================================
@click.option('--depth', type=int, default=None,
              help='Subsample reads to this depth (0 = disabled)')
@click.option('--gsize', type=str, default=None,
              help='Estimated genome size, e.g. 3.2M (default: estimate with KMC)')
@click.option('--trim/--no-trim', default=None,
              help='Trim adapters with Trimmomatic')
@click.option('--trim-opts', type=str, default=None,
              help='Extra Trimmomatic steps, appended after the defaults')
@click.option('--adapters', type=click.Path(),
              help='Adapter FASTA for trimming')
# ============================================================================
# Assembly
# ============================================================================
@click.option('--kmers', type=str, default=None,
              help='K-mers to use, e.g. 31,55,77 (default: auto)')
@click.option('--opts', type=str, default=None,
              help='Extra SPAdes options, quoted')
@click.option('--assembly', 'variant', type=str, default=None,
              help=f"SPAdes result to use ({', '.join(ASSEMBLY_VARIANTS)})")
@click.option('--no-polish', is_flag=True,
              help='Skip Pilon polishing')
# ============================================================================
# Output
# ============================================================================
@click.option('--minlen', type=int, default=None,
              help='Minimum contig length (0 = keep all)')
@click.option('--mincov', type=float, default=None,
              help='Minimum contig coverage')
@click.option('--namefmt', type=str, default=None,
              help='Format of contig FASTA IDs in printf style')
@click.option('--force', is_flag=True,
              help='Overwrite an existing output directory')
@click.option('--keepfiles', is_flag=True,
              help='Keep intermediate files')
@click.option('--verbose', 'echo_tools', is_flag=True,
              help='Echo external tool output as it runs')
@click.pass_context
def run(ctx, r1, r2, outdir, config_file, cpus, ram, tmpdir, depth, gsize, trim,
        trim_opts, adapters, kmers, opts, variant, no_polish, minlen, mincov, namefmt,
        force, keepfiles, echo_tools):
    """
    Assemble a bacterial genome from one pair of Illumina read files.

    \b
    Examples:
        draftweaver run --R1 s_R1.fq.gz --R2 s_R2.fq.gz -o asm/
        draftweaver run --R1 s_R1.fq.gz --R2 s_R2.fq.gz -o asm/ \\
            --gsize 4.6M --minlen 200 --cpus 8 --ram 32
    """
    verbose = ctx.obj.get('VERBOSE', False)
    quiet = ctx.obj.get('QUIET', False)

    if config_file and not Path(config_file).is_file():
        click.echo(f"✗ Configuration file not found: {config_file}", err=True)
        ctx.exit(1)

    pipeline_config = load_config(Path(config_file) if config_file else None)

    # Command-line options override the configuration file
    overrides = {
        ('resources', 'cpus'): cpus,
        ('resources', 'ram_gb'): ram,
        ('resources', 'tmpdir'): tmpdir,
        ('reads', 'depth'): depth,
        ('reads', 'gsize'): gsize,
        ('reads', 'trim'): trim,
        ('reads', 'trim_opts'): trim_opts,
        ('reads', 'adapters'): adapters,
        ('kmers', 'list'): kmers,
        ('assembly', 'opts'): opts,
        ('assembly', 'variant'): variant,
        ('contigs', 'min_length'): minlen,
        ('contigs', 'min_coverage'): mincov,
        ('contigs', 'name_format'): namefmt,
    }
    for (section, key), value in overrides.items():
        if value is not None:
            pipeline_config[section][key] = value
    if no_polish:
        pipeline_config['polish']['enabled'] = False
    if force:
        pipeline_config['output']['force'] = True
    if keepfiles:
        pipeline_config['output']['keepfiles'] = True
    if echo_tools:
        pipeline_config['output']['verbose'] = True
    if verbose:
        pipeline_config['output']['logging']['level'] = 'DEBUG'

    errors = validate_config(pipeline_config)
    if errors:
        click.echo("✗ Invalid options:", err=True)
        for error in errors:
            click.echo(f"  • {error}", err=True)
        ctx.exit(1)

    pipeline_config['runtime'] = {
        'r1': r1,
        'r2': r2,
        'output_dir': outdir,
    }

    from .utils.pipeline import PipelineOrchestrator, prepare_output_dir, validate_reads
    from .utils.run_log import RunLog

    failure = None
    with RunLog(level=pipeline_config['output']['logging']['level'], console=not quiet) as run_log:
        try:
            validate_reads(r1, r2)
            output_dir = prepare_output_dir(Path(outdir), force=pipeline_config['output']['force'])
            run_log.set_log_file(output_dir / pipeline_config['output']['logging']['log_file'])
            run_log.logger.info(f"Command: draftweaver {' '.join(sys.argv[1:])}")

            orchestrator = PipelineOrchestrator(config=pipeline_config)
            result = orchestrator.run()
        except DraftWeaverError as e:
            run_log.logger.error(f"Aborted: {e}")
            failure = e

    if failure is not None:
        click.echo(f"\n✗ Pipeline failed: {failure}", err=True)
        ctx.exit(1)

    if not quiet:
        summary = result.contigs
        click.echo("\n" + "=" * 60)
        click.echo("✓ Assembly completed successfully!")
        click.echo("=" * 60)
        click.echo(f"Contigs: {summary.count:,} ({summary.total_bp:,} bp, N50 {summary.n50:,})")
        click.echo(f"Pilon corrections: {result.changes.total:,}")
        click.echo(f"Final contigs: {result.contigs_path}")
        if result.graph_path:
            click.echo(f"Assembly graph: {result.graph_path}")


# ============================================================================
# Utility Commands
# ============================================================================

@main.command()
@click.option('--config', '-c', 'config_file', type=click.Path(exists=True),
              help='Configuration file naming the tool executables')
def check(config_file):
    """Check that every external tool is installed."""
    config = load_config(Path(config_file) if config_file else None)

    missing = []
    for name, executable in config['tools'].items():
        location = shutil.which(executable)
        if location:
            click.echo(f"✓ {name}: {location}")
        else:
            click.echo(f"✗ {name}: '{executable}' not found in PATH", err=True)
            missing.append(name)

    if missing:
        click.echo(f"\n{len(missing)} tool(s) missing: {', '.join(missing)}", err=True)
        sys.exit(1)
    click.echo("\nAll tools found.")


@main.command()
def version():
    """Show version information."""
    click.echo(f"DraftWeaver v{__version__}")
    click.echo("\nDependencies:")

    import Bio
    click.echo(f"  BioPython: {Bio.__version__}")
    click.echo(f"  PyYAML: {yaml.__version__}")

    import psutil
    click.echo(f"  psutil: {psutil.__version__}")


if __name__ == '__main__':
    sys.exit(main())
