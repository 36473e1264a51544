"""
Build components for ccbuild.

This module provides:
- The fluent Build entry point
- Flag synthesis and flag support probing
- Per-file compilation, parallel orchestration and archiving
"""

from .archive_creator import ArchiveCreator
from .builder import Build
from .compilation_executor import CompilationExecutor
from .compilation_orchestrator import CompilationOrchestrator, CompileJob, object_path_for
from .flag_builder import VALID_OPT_LEVELS, FlagBuilder, FlagSettings
from .flag_prober import FlagSupportProber
from .session import BuildSession

__all__ = [
    'ArchiveCreator',
    'Build',
    'BuildSession',
    'CompilationExecutor',
    'CompilationOrchestrator',
    'CompileJob',
    'FlagBuilder',
    'FlagSettings',
    'FlagSupportProber',
    'VALID_OPT_LEVELS',
    'object_path_for',
]
