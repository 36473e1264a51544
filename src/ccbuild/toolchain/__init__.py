"""
Toolchain components for ccbuild.

This module provides:
- The resolved compiler/archiver descriptors (Tool, Archiver)
- Compiler family classification
- Compiler and archiver resolution
- Visual Studio discovery
"""

from .classifier import ToolClassifier
from .tool import Archiver, Tool, ToolFamily
from .tool_resolver import ToolResolver
from .windows_registry import (
    InstallationSource,
    MsvcToolchain,
    RegistryInstallationSource,
    VsInstallation,
    VsVersion,
    WindowsSdk,
    WindowsToolchainLocator,
    find_tool,
    find_vs_version,
)

__all__ = [
    'Archiver',
    'Tool',
    'ToolFamily',
    'ToolClassifier',
    'ToolResolver',
    'InstallationSource',
    'MsvcToolchain',
    'RegistryInstallationSource',
    'VsInstallation',
    'VsVersion',
    'WindowsSdk',
    'WindowsToolchainLocator',
    'find_tool',
    'find_vs_version',
]
