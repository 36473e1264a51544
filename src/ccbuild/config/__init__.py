"""
Configuration for ccbuild.

This module provides:
- The build configuration data model
- Target triple parsing and default tool tables
- Environment variable resolution
"""

from .build_config import NO_STDLIB, BuildConfig
from .env_vars import EnvironmentResolver, EnvVar, ToolRequest
from .target import TargetTriple, ToolchainKind, detect_host_triple

__all__ = [
    'BuildConfig',
    'NO_STDLIB',
    'EnvironmentResolver',
    'EnvVar',
    'ToolRequest',
    'TargetTriple',
    'ToolchainKind',
    'detect_host_triple',
]
