"""
DraftWeaver v0.1.0

Configuration schema for DraftWeaver.

Defines all available configuration parameters with defaults and validation,
plus the named tuning constants used by parameter derivation.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

import copy
import os
import re
from typing import Dict, Any, Optional, List
from pathlib import Path
import yaml


# ============================================================================
# Tuning constants
# ============================================================================

# Global k-mer envelope for the assembler's multi-k mode
MIN_K = 31
MAX_K = 127

# Reads shorter than this (average) get a lower k-mer floor
SHORT_READ_THRESHOLD = 75
SHORT_READ_MIN_K = 21

# Largest k-mer as a fraction of the average read length
KMER_READ_FRACTION = 0.75
KMER_TARGET_COUNT = 5
MIN_KMER_STEP = 5

# Only subsample when depth exceeds target by more than this factor
DEPTH_GUARD = 1.1
SUBSAMPLE_SEED = 11
MIN_SAMPLING_FACTOR = 0.001  # smallest fraction seqtk is given (3 decimals)

# Read statistics / genome size collaborators
FQCHK_MIN_QUALITY = 3
KMC_KMER = 25
KMC_MIN_COUNT = 3

# Read correction and stitching
LIGHTER_KMER = 32
LIGHTER_MAX_CORRECTIONS = 1
FLASH_MIN_OVERLAP = 20

# Trimmomatic steps always applied when trimming; user options follow them
TRIM_STEPS = 'ILLUMINACLIP:{adapters}:1:30:11 LEADING:3 TRAILING:3 MINLEN:30 TOPHRED33'

# Fraction of the memory ceiling handed to IO-bound helpers (samtools sort)
HELPER_MEMORY_FRACTION = 0.25
HELPER_MAX_THREADS = 4

FASTA_LINE_WIDTH = 60

ASSEMBLY_VARIANTS = ['before_rr', 'contigs', 'scaffolds']

# printf-style integer placeholder, e.g. %d, %05d, %-3d
NAME_PLACEHOLDER_RE = re.compile(r'%[-+ 0#]*\d*d')


# Default configuration values
DEFAULT_CONFIG = {
    # ========================================================================
    # Resources
    # ========================================================================
    'resources': {
        'cpus': 0,  # 0 = all available cores
        'ram_gb': 16,
        'tmpdir': None,  # Default: $TMPDIR or system temp
    },

    # ========================================================================
    # Read handling
    # ========================================================================
    'reads': {
        'depth': 150,  # Target depth for subsampling (0 = disabled)
        'gsize': None,  # e.g. '4.6M'; None = estimate with KMC
        'trim': False,
        'trim_opts': '',  # Extra Trimmomatic steps appended after TRIM_STEPS
        'adapters': None,  # Trimmomatic adapter FASTA
    },

    # ========================================================================
    # K-mer selection
    # ========================================================================
    'kmers': {
        'list': None,  # e.g. '31,55,77'; None = automatic
        'min_k': MIN_K,
        'max_k': MAX_K,
    },

    # ========================================================================
    # Assembly
    # ========================================================================
    'assembly': {
        'variant': 'contigs',  # 'before_rr', 'contigs', 'scaffolds'
        'opts': '',  # Extra SPAdes options passed through verbatim
    },

    # ========================================================================
    # Polishing
    # ========================================================================
    'polish': {
        'enabled': True,
        'fix': 'bases',
        'mindepth': 0.25,
    },

    # ========================================================================
    # Contig output
    # ========================================================================
    'contigs': {
        'min_length': 0,
        'min_coverage': 2.0,
        'name_format': 'contig%05d',
    },

    # ========================================================================
    # Output
    # ========================================================================
    'output': {
        'force': False,
        'keepfiles': False,
        'verbose': False,
        'contigs_file': 'contigs.fa',
        'graph_name': 'contigs',
        'summary_file': 'run_summary.yaml',
        'logging': {
            'level': 'INFO',  # 'DEBUG', 'INFO', 'WARNING', 'ERROR'
            'log_file': 'draftweaver.log',
        },
    },

    # ========================================================================
    # External executables
    # ========================================================================
    'tools': {
        'seqtk': 'seqtk',
        'kmc': 'kmc',
        'trimmomatic': 'trimmomatic',
        'lighter': 'lighter',
        'flash': 'flash',
        'spades': 'spades.py',
        'bwa': 'bwa',
        'samtools': 'samtools',
        'pilon': 'pilon',
    },
}


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from file or return defaults.

    Args:
        config_path: Path to YAML config file (None = use defaults)

    Returns:
        Configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path:
        config_path = Path(config_path)
        if config_path.exists():
            with open(config_path) as f:
                user_config = yaml.safe_load(f)

            if user_config:
                # Deep merge user config into defaults
                config = _deep_merge(config, user_config)
                config = _substitute_env_vars(config)

    return config


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary
        override: Override dictionary

    Returns:
        Merged dictionary
    """
    result = base.copy()

    for key, value in override.items():
        # A section whose children are all commented out loads as None
        if value is None and isinstance(result.get(key), dict):
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _substitute_env_vars(config: Any) -> Any:
    """
    Recursively substitute ${VAR} and ${VAR:-default} in string values.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}

    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]

    elif isinstance(config, str):
        pattern = r'\$\{([^}:]+)(?::-(.*?))?\}'

        def replace_var(match):
            var_name = match.group(1)
            default_value = match.group(2)
            return os.environ.get(var_name, default_value or '')

        return re.sub(pattern, replace_var, config)

    else:
        return config


def save_config_template(output_path: Path):
    """
    Save a configuration template with every default to file.

    Args:
        output_path: Output file path
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    with open(output_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False, sort_keys=False)


def validate_name_format(name_format: str) -> Optional[str]:
    """
    Check a contig naming template.

    Returns:
        An error message, or None if the template holds exactly one
        integer placeholder and no other conversions.
    """
    placeholders = NAME_PLACEHOLDER_RE.findall(name_format)
    if len(placeholders) != 1:
        return (f"Contig name format '{name_format}' must contain exactly one "
                f"integer placeholder such as %05d (found {len(placeholders)})")

    # Any '%' left after removing the placeholder and escaped '%%' is a stray conversion
    remainder = NAME_PLACEHOLDER_RE.sub('', name_format).replace('%%', '')
    if '%' in remainder:
        return f"Contig name format '{name_format}' contains an unsupported '%' conversion"

    return None


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration dictionary.

    Args:
        config: Configuration to validate

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    for section, default in DEFAULT_CONFIG.items():
        if isinstance(default, dict) and not isinstance(config.get(section, {}), dict):
            errors.append(f"Invalid section '{section}': expected a mapping, "
                          f"got {config[section]!r}")
    if errors:
        return errors

    resources = config.get('resources', {})
    if not isinstance(resources.get('cpus'), int) or resources.get('cpus') < 0:
        errors.append(f"Invalid cpus: {resources.get('cpus')} (must be an integer >= 0)")
    ram = resources.get('ram_gb')
    if not isinstance(ram, (int, float)) or ram <= 0:
        errors.append(f"Invalid ram_gb: {ram} (must be > 0)")
    tmpdir = resources.get('tmpdir')
    if tmpdir and not Path(tmpdir).is_dir():
        errors.append(f"Temporary directory not found: {tmpdir}")

    depth = config.get('reads', {}).get('depth')
    if not isinstance(depth, int) or depth < 0:
        errors.append(f"Invalid depth: {depth} (must be an integer >= 0)")

    if config.get('reads', {}).get('trim'):
        adapters = config['reads'].get('adapters')
        if not adapters:
            errors.append("Trimming enabled but no adapter file configured (reads.adapters)")
        elif not Path(adapters).exists():
            errors.append(f"Adapter file not found: {adapters}")

    # Validate k-mer envelope
    kmers = config.get('kmers', {})
    min_k = kmers.get('min_k', MIN_K)
    max_k = kmers.get('max_k', MAX_K)
    if not isinstance(min_k, int) or not isinstance(max_k, int) or min_k > max_k:
        errors.append(f"Invalid k-mer envelope: min_k={min_k}, max_k={max_k} (need min_k <= max_k)")

    variant = config.get('assembly', {}).get('variant')
    if variant not in ASSEMBLY_VARIANTS:
        errors.append(f"Invalid assembly variant: {variant} (choose from {', '.join(ASSEMBLY_VARIANTS)})")

    contigs = config.get('contigs', {})
    if not isinstance(contigs.get('min_length'), int) or contigs.get('min_length') < 0:
        errors.append(f"Invalid min_length: {contigs.get('min_length')}")
    min_cov = contigs.get('min_coverage')
    if not isinstance(min_cov, (int, float)) or min_cov < 0:
        errors.append(f"Invalid min_coverage: {min_cov}")
    name_error = validate_name_format(str(contigs.get('name_format', '')))
    if name_error:
        errors.append(name_error)

    level = config.get('output', {}).get('logging', {}).get('level', 'INFO')
    if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR'):
        errors.append(f"Invalid logging level: {level}")

    return errors
