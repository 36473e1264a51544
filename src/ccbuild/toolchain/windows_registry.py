"""Visual Studio toolchain discovery.

This module locates an MSVC installation when ``cl.exe`` is not already on
the search path (i.e. the build is not running inside a developer prompt).

Design:
    - Installation metadata (registry, vswhere) sits behind InstallationSource
      so the layout logic is platform independent and testable with a fake
    - Probe order: VSINSTALLDIR override, installation source, default directories
    - Read-only: nothing is installed or modified
    - The result is injected into the compiler Tool as INCLUDE/LIB/PATH
"""

import json
import logging
import os
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from ..config.env_vars import EnvVar
from ..config.target import TargetTriple
from ..errors import ToolNotFoundError


class VsVersion(Enum):
    """A version of Visual Studio."""

    VS12 = "12"
    VS14 = "14"
    VS15 = "15"
    VS16 = "16"
    VS17 = "17"

    @property
    def year(self) -> int:
        return {"12": 2013, "14": 2015, "15": 2017, "16": 2019, "17": 2022}[self.value]

    @property
    def major(self) -> int:
        return int(self.value)


# Newest first.
KNOWN_VS_VERSIONS: List[VsVersion] = sorted(VsVersion, key=lambda v: v.major, reverse=True)

_PROGRAM_FILES_X86 = Path(r"C:\Program Files (x86)")
_PROGRAM_FILES = Path(r"C:\Program Files")
_EDITIONS = ("Enterprise", "Professional", "Community", "BuildTools")

DEFAULT_INSTALL_DIRS: Dict[str, List[Path]] = {
    "17": [_PROGRAM_FILES / "Microsoft Visual Studio" / "2022" / e for e in _EDITIONS],
    "16": [_PROGRAM_FILES_X86 / "Microsoft Visual Studio" / "2019" / e for e in _EDITIONS],
    "15": [_PROGRAM_FILES_X86 / "Microsoft Visual Studio" / "2017" / e for e in _EDITIONS],
    "14": [_PROGRAM_FILES_X86 / "Microsoft Visual Studio 14.0"],
    "12": [_PROGRAM_FILES_X86 / "Microsoft Visual Studio 12.0"],
}

# (host arch, target arch) -> VC\bin subdirectory for VS 2013/2015 layouts.
LEGACY_BIN_SUBDIRS: Dict[Tuple[str, str], str] = {
    ("x86", "x86"): "",
    ("x86", "x64"): "x86_amd64",
    ("x86", "arm"): "x86_arm",
    ("x64", "x64"): "amd64",
    ("x64", "x86"): "amd64_x86",
    ("x64", "arm"): "amd64_arm",
}

LEGACY_LIB_SUBDIRS: Dict[str, str] = {"x86": "", "x64": "amd64", "arm": "arm"}


def _version_key(text: str) -> Tuple[int, ...]:
    parts = []
    for piece in text.split("."):
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return tuple(parts)


@dataclass(frozen=True)
class VsInstallation:
    """A Visual Studio installation reported by an InstallationSource."""

    version: str
    root: Path


@dataclass(frozen=True)
class WindowsSdk:
    """A Windows SDK installation ("10.0.19041.0", "8.1", ...)."""

    version: str
    root: Path


@dataclass
class MsvcToolchain:
    """Paths derived from a Visual Studio installation for one host/target pair."""

    version: str
    root: Path
    cl_path: Path
    bin_dirs: List[Path] = field(default_factory=list)
    include_paths: List[Path] = field(default_factory=list)
    lib_paths: List[Path] = field(default_factory=list)

    @property
    def bin_dir(self) -> Path:
        return self.cl_path.parent

    def tool_path(self, name: str) -> Path:
        """Path of a tool (lib.exe, link.exe, ...) next to cl.exe."""
        return self.bin_dir / name

    def to_env(self, base_path: Optional[str] = None) -> Dict[str, str]:
        """Environment overlay that lets cl.exe find its headers, libraries and DLLs.

        Args:
            base_path: PATH to append after the toolchain's bin directories
        """
        path_entries = [str(p) for p in self.bin_dirs]
        if base_path:
            path_entries.append(base_path)
        return {
            "INCLUDE": os.pathsep.join(str(p) for p in self.include_paths),
            "LIB": os.pathsep.join(str(p) for p in self.lib_paths),
            "PATH": os.pathsep.join(path_entries),
        }


class InstallationSource(ABC):
    """Capability interface over the platform's installation metadata."""

    @abstractmethod
    def locate_installations(self) -> List[VsInstallation]:
        """Return discovered Visual Studio installations (any order)."""
        pass

    def locate_windows_sdks(self) -> List[WindowsSdk]:
        """Return discovered Windows SDKs (any order)."""
        return []


class RegistryInstallationSource(InstallationSource):
    """Reads installation metadata from vswhere and the Windows registry.

    Returns nothing on non-Windows hosts.
    """

    VSWHERE_COMPONENT = "Microsoft.VisualStudio.Component.VC.Tools.x86.x64"
    VC7_KEYS = (
        r"SOFTWARE\Microsoft\VisualStudio\SxS\VC7",
        r"SOFTWARE\WOW6432Node\Microsoft\VisualStudio\SxS\VC7",
    )
    KITS_KEYS = (
        r"SOFTWARE\Microsoft\Windows Kits\Installed Roots",
        r"SOFTWARE\WOW6432Node\Microsoft\Windows Kits\Installed Roots",
    )

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = environ if environ is not None else os.environ

    def locate_installations(self) -> List[VsInstallation]:
        if sys.platform != "win32":
            return []
        return self._from_vswhere() + self._from_registry()

    def locate_windows_sdks(self) -> List[WindowsSdk]:
        if sys.platform != "win32":
            return []

        sdks: List[WindowsSdk] = []
        kits10 = self._query_registry(self.KITS_KEYS, "KitsRoot10")
        if kits10:
            sdks.extend(sdks_under(Path(kits10)))
        kits81 = self._query_registry(self.KITS_KEYS, "KitsRoot81")
        if kits81:
            sdks.append(WindowsSdk(version="8.1", root=Path(kits81)))
        return sdks

    def vswhere_path(self) -> Path:
        program_files = self.environ.get("ProgramFiles(x86)") or str(_PROGRAM_FILES_X86)
        return Path(program_files) / "Microsoft Visual Studio" / "Installer" / "vswhere.exe"

    def _from_vswhere(self) -> List[VsInstallation]:
        vswhere = self.vswhere_path()
        if not vswhere.exists():
            logging.debug(f"vswhere not found at {vswhere}")
            return []

        try:
            result = subprocess.run(
                [str(vswhere), "-all", "-products", "*", "-requires",
                 self.VSWHERE_COMPONENT, "-format", "json"],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logging.debug(f"vswhere could not be run: {e}")
            return []

        if result.returncode != 0:
            logging.debug(f"vswhere returned {result.returncode}: {result.stderr}")
            return []

        try:
            entries = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            logging.debug(f"vswhere produced unreadable output: {e}")
            return []

        installs = []
        for entry in entries:
            version = str(entry.get("installationVersion", "")).split(".")[0]
            path = entry.get("installationPath")
            if version and path:
                installs.append(VsInstallation(version=version, root=Path(path)))
        return installs

    def _from_registry(self) -> List[VsInstallation]:
        installs = []
        for version in ("14.0", "12.0"):
            vc_dir = self._query_registry(self.VC7_KEYS, version)
            if vc_dir:
                # The VC7 value points at <root>\VC\.
                installs.append(
                    VsInstallation(version=version.split(".")[0], root=Path(vc_dir).parent)
                )
        return installs

    @staticmethod
    def _query_registry(keys, value_name: str) -> Optional[str]:
        import winreg

        for key_path in keys:
            try:
                with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, key_path) as key:
                    value, _ = winreg.QueryValueEx(key, value_name)
                    return str(value)
            except OSError:
                continue
        return None


def sdks_under(kits_root: Path) -> List[WindowsSdk]:
    """Enumerate Windows 10+ SDK versions installed under a Windows Kits root."""
    include_dir = kits_root / "Include"
    if not include_dir.is_dir():
        return []
    return [
        WindowsSdk(version=entry.name, root=kits_root)
        for entry in include_dir.iterdir()
        if entry.is_dir() and entry.name.startswith("10.")
    ]


class WindowsToolchainLocator:
    """Finds a Visual Studio toolchain and derives its search paths.

    Example usage:
        locator = WindowsToolchainLocator(RegistryInstallationSource())
        toolchain = locator.locate(TargetTriple.parse("x86_64-pc-windows-msvc"), host)
        print(toolchain.cl_path, toolchain.include_paths)
    """

    def __init__(
        self,
        source: Optional[InstallationSource] = None,
        environ: Optional[Mapping[str, str]] = None,
        default_dirs: Optional[Dict[str, List[Path]]] = None
    ):
        """Initialize locator.

        Args:
            source: Installation metadata source (default: registry/vswhere)
            environ: Environment mapping for the VSINSTALLDIR override
            default_dirs: Version -> candidate roots used as a last resort
        """
        self.environ = environ if environ is not None else os.environ
        self.source = source if source is not None else RegistryInstallationSource(self.environ)
        self.default_dirs = default_dirs if default_dirs is not None else DEFAULT_INSTALL_DIRS

    def locate(self, target: TargetTriple, host: TargetTriple) -> MsvcToolchain:
        """Locate a toolchain that builds for ``target`` on ``host``.

        Args:
            target: MSVC target triple
            host: Host triple (non-Windows hosts are treated as x64)

        Returns:
            MsvcToolchain with compiler and search paths

        Raises:
            ToolNotFoundError: If no usable installation is found
        """
        target_arch = target.msvc_arch()
        if target_arch is None:
            raise ToolNotFoundError(f"Visual Studio has no toolchain for {target}")
        host_arch = (host.msvc_arch() if host.is_windows else None) or "x64"

        for install in self._candidates():
            toolchain = self._toolchain_for(install, host_arch, target_arch)
            if toolchain is not None:
                logging.info(
                    f"Using Visual Studio {install.version} at {install.root} ({toolchain.cl_path})"
                )
                return toolchain
            logging.debug(
                f"Visual Studio {install.version} at {install.root} has no "
                f"{host_arch}->{target_arch} compiler"
            )

        raise ToolNotFoundError(
            f"No Visual Studio installation with a {target_arch} compiler was found; "
            f"install Visual Studio Build Tools or set {EnvVar.VS_INSTALL_DIR}"
        )

    def find_vs_version(self) -> VsVersion:
        """Return the newest installed Visual Studio version.

        Raises:
            ToolNotFoundError: If no known version is installed
        """
        for install in self._candidates():
            for version in KNOWN_VS_VERSIONS:
                if version.value == install.version:
                    return version
        raise ToolNotFoundError("Could not find a supported Visual Studio version")

    def _candidates(self) -> List[VsInstallation]:
        candidates: List[VsInstallation] = []

        override = self.environ.get(EnvVar.VS_INSTALL_DIR)
        if override and override.strip():
            root = Path(override.strip())
            candidates.append(VsInstallation(version=self._override_version(root), root=root))

        discovered = sorted(
            self.source.locate_installations(),
            key=lambda install: _version_key(install.version),
            reverse=True,
        )
        candidates.extend(discovered)

        for version in KNOWN_VS_VERSIONS:
            for root in self.default_dirs.get(version.value, []):
                if root.is_dir():
                    candidates.append(VsInstallation(version=version.value, root=root))

        return candidates

    def _override_version(self, root: Path) -> str:
        declared = self.environ.get(EnvVar.VS_VERSION)
        if declared and declared.strip():
            return declared.strip().split(".")[0]
        if (root / "VC" / "Tools" / "MSVC").is_dir():
            return VsVersion.VS15.value
        return VsVersion.VS14.value

    def _toolchain_for(
        self,
        install: VsInstallation,
        host_arch: str,
        target_arch: str
    ) -> Optional[MsvcToolchain]:
        try:
            major = int(install.version)
        except ValueError:
            logging.warning(f"Ignoring Visual Studio installation with version {install.version!r}")
            return None

        if major >= VsVersion.VS15.major:
            toolchain = self._modern_toolchain(install, host_arch, target_arch)
        else:
            toolchain = self._legacy_toolchain(install, host_arch, target_arch)

        if toolchain is None or not toolchain.cl_path.exists():
            return None

        self._add_sdk_paths(toolchain, major, target_arch)
        return toolchain

    def _modern_toolchain(
        self,
        install: VsInstallation,
        host_arch: str,
        target_arch: str
    ) -> Optional[MsvcToolchain]:
        tools_dir = install.root / "VC" / "Tools" / "MSVC"
        toolset = self._toolset_version(install.root, tools_dir)
        if toolset is None:
            return None

        tools = tools_dir / toolset
        bin_dir = tools / "bin" / f"Host{host_arch}" / target_arch
        bin_dirs = [bin_dir]
        if host_arch != target_arch:
            # Cross compilers load DLLs from the native host directory.
            bin_dirs.append(tools / "bin" / f"Host{host_arch}" / host_arch)

        include_paths = [tools / "include"]
        lib_paths = [tools / "lib" / target_arch]
        atlmfc = tools / "atlmfc"
        if atlmfc.is_dir():
            include_paths.append(atlmfc / "include")
            lib_paths.append(atlmfc / "lib" / target_arch)

        return MsvcToolchain(
            version=install.version,
            root=install.root,
            cl_path=bin_dir / "cl.exe",
            bin_dirs=bin_dirs,
            include_paths=include_paths,
            lib_paths=lib_paths,
        )

    @staticmethod
    def _toolset_version(root: Path, tools_dir: Path) -> Optional[str]:
        default_file = root / "VC" / "Auxiliary" / "Build" / "Microsoft.VCToolsVersion.default.txt"
        if default_file.is_file():
            version = default_file.read_text(encoding="utf-8").strip()
            if version and (tools_dir / version).is_dir():
                return version

        if not tools_dir.is_dir():
            return None
        versions = [entry.name for entry in tools_dir.iterdir() if entry.is_dir()]
        if not versions:
            return None
        return max(versions, key=_version_key)

    @staticmethod
    def _legacy_toolchain(
        install: VsInstallation,
        host_arch: str,
        target_arch: str
    ) -> Optional[MsvcToolchain]:
        subdir = LEGACY_BIN_SUBDIRS.get((host_arch, target_arch))
        lib_subdir = LEGACY_LIB_SUBDIRS.get(target_arch)
        if subdir is None or lib_subdir is None:
            return None

        vc = install.root / "VC"
        bin_dir = vc / "bin" / subdir if subdir else vc / "bin"
        bin_dirs = [bin_dir]
        if host_arch != target_arch:
            host_subdir = LEGACY_BIN_SUBDIRS[(host_arch, host_arch)]
            bin_dirs.append(vc / "bin" / host_subdir if host_subdir else vc / "bin")

        def under(base: Path) -> Path:
            return base / lib_subdir if lib_subdir else base

        include_paths = [vc / "include"]
        lib_paths = [under(vc / "lib")]
        if (vc / "atlmfc").is_dir():
            include_paths.append(vc / "atlmfc" / "include")
            lib_paths.append(under(vc / "atlmfc" / "lib"))

        return MsvcToolchain(
            version=install.version,
            root=install.root,
            cl_path=bin_dir / "cl.exe",
            bin_dirs=bin_dirs,
            include_paths=include_paths,
            lib_paths=lib_paths,
        )

    def _add_sdk_paths(self, toolchain: MsvcToolchain, major: int, target_arch: str) -> None:
        sdks = self.source.locate_windows_sdks()
        win10 = [sdk for sdk in sdks if sdk.version.startswith("10.")]
        win81 = [sdk for sdk in sdks if sdk.version == "8.1"]

        if win10 and major >= VsVersion.VS14.major:
            sdk = max(win10, key=lambda s: _version_key(s.version))
            include = sdk.root / "Include" / sdk.version
            lib = sdk.root / "Lib" / sdk.version
            toolchain.include_paths.extend(
                include / part for part in ("ucrt", "um", "shared", "winrt")
            )
            toolchain.lib_paths.extend([lib / "ucrt" / target_arch, lib / "um" / target_arch])
            toolchain.bin_dirs.append(sdk.root / "bin" / sdk.version / "x64")
        elif win81:
            sdk = win81[0]
            toolchain.include_paths.extend(
                sdk.root / "Include" / part for part in ("um", "shared", "winrt")
            )
            toolchain.lib_paths.append(sdk.root / "Lib" / "winv6.3" / "um" / target_arch)
        else:
            logging.warning(
                f"No Windows SDK found for Visual Studio {toolchain.version}; "
                "system headers may be missing"
            )


def find_tool(
    target: str,
    tool: str,
    host: Optional[str] = None,
    source: Optional[InstallationSource] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Optional[Path]:
    """Find a tool (cl.exe, lib.exe, link.exe, ...) in an MSVC installation.

    Args:
        target: MSVC target triple
        tool: Executable name
        host: Host triple (default: x64 Windows)
        source: Installation metadata source
        environ: Environment mapping for the VSINSTALLDIR override

    Returns:
        Path to the tool, or None if the target is not MSVC or nothing is installed
    """
    target_triple = TargetTriple.parse(target)
    if not target_triple.is_msvc:
        return None

    host_triple = TargetTriple.parse(host or "x86_64-pc-windows-msvc")
    locator = WindowsToolchainLocator(source=source, environ=environ)
    try:
        toolchain = locator.locate(target_triple, host_triple)
    except ToolNotFoundError as e:
        logging.debug(f"find_tool({target!r}, {tool!r}): {e}")
        return None

    path = toolchain.tool_path(tool)
    return path if path.exists() else None


def find_vs_version(
    source: Optional[InstallationSource] = None,
    environ: Optional[Mapping[str, str]] = None
) -> VsVersion:
    """Find the most recent installed version of Visual Studio.

    Raises:
        ToolNotFoundError: If no supported version is installed
    """
    return WindowsToolchainLocator(source=source, environ=environ).find_vs_version()
