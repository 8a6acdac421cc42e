"""
DraftWeaver v0.1.0

Configuration management for DraftWeaver.

Author: DraftWeaver Development Team
License: Dual License (Academic/Commercial) - See LICENSE_ACADEMIC.md and LICENSE_COMMERCIAL.md
"""

from .schema import (
    DEFAULT_CONFIG,
    ASSEMBLY_VARIANTS,
    load_config,
    save_config_template,
    validate_config,
    validate_name_format,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ASSEMBLY_VARIANTS",
    "load_config",
    "save_config_template",
    "validate_config",
    "validate_name_format",
]
