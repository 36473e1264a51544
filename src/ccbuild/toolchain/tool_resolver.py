"""Tool resolution.

This module turns the resolver's command words into runnable descriptors:
it splits compiler launchers off ``CC`` values, searches ``PATH``, falls back
to Visual Studio discovery for MSVC targets and classifies the compiler.
"""

import shutil
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from ..config.env_vars import EnvironmentResolver, EnvVar, ToolRequest
from ..errors import ToolNotFoundError
from .classifier import ToolClassifier
from .tool import Archiver, Tool
from .windows_registry import MsvcToolchain, WindowsToolchainLocator

KNOWN_WRAPPERS = ("ccache", "distcc", "sccache", "icecc")


class ToolResolver:
    """Resolves the compiler and archiver for one terminal action.

    Example usage:
        tools = ToolResolver(environ, ToolClassifier(environ), locator)
        tool = tools.resolve_compiler(env_resolver, cpp=False, cuda=False)
    """

    def __init__(
        self,
        environ: Mapping[str, str],
        classifier: ToolClassifier,
        locator: WindowsToolchainLocator
    ):
        """Initialize tool resolver.

        Args:
            environ: Environment used for PATH lookups
            classifier: Family classifier (shared cache for the action)
            locator: Visual Studio locator used when cl.exe is not on PATH
        """
        self.environ = environ
        self.classifier = classifier
        self.locator = locator
        self.msvc_toolchain: Optional[MsvcToolchain] = None

    def which(self, program: str) -> Optional[Path]:
        """Find ``program`` on the build's PATH (or as a path)."""
        found = shutil.which(program, path=self.environ.get(EnvVar.PATH))
        return Path(found) if found else None

    def split_wrapper(self, words: List[str]) -> Tuple[Optional[Path], str, List[str]]:
        """Split CC-style command words into (wrapper, compiler, extra args).

        "ccache cc -m32" -> (ccache, "cc", ["-m32"]). If the word after a
        known launcher is not an executable, the launcher is the compiler.
        """
        first = words[0]
        if Path(first).stem in KNOWN_WRAPPERS and len(words) > 1:
            if self.which(words[1]) is not None:
                wrapper = self.which(first)
                if wrapper is None:
                    raise ToolNotFoundError(f"Compiler launcher not found: {first}")
                return wrapper, words[1], words[2:]
            return None, first, []
        return None, first, words[1:]

    def resolve_compiler(
        self,
        env_resolver: EnvironmentResolver,
        cpp: bool,
        cuda: bool,
        explicit: Optional[Path] = None
    ) -> Tool:
        """Resolve and classify the compiler.

        Args:
            env_resolver: Environment resolver for the target/host pair
            cpp: Whether C++ is being compiled
            cuda: Whether CUDA is being compiled
            explicit: Compiler set on the build configuration

        Returns:
            Tool with no flags yet

        Raises:
            UnsupportedTargetHostError: If the target is unknown and nothing is configured
            ToolNotFoundError: If the compiler cannot be found or run
        """
        request = env_resolver.resolve_compiler(cpp=cpp, cuda=cuda, explicit=explicit)
        wrapper, program, extra_args = self.split_wrapper(request.words)

        env = {}
        include_paths: List[Path] = []
        lib_paths: List[Path] = []
        path = self.which(program)

        if path is None and self._can_locate_msvc(request, env_resolver):
            toolchain = self.locator.locate(env_resolver.target, env_resolver.host)
            self.msvc_toolchain = toolchain
            path = toolchain.cl_path
            env = toolchain.to_env(self.environ.get(EnvVar.PATH))
            include_paths = list(toolchain.include_paths)
            lib_paths = list(toolchain.lib_paths)

        if path is None:
            raise ToolNotFoundError(
                f"Failed to find compiler {program!r} (from {request.origin}); "
                f"is it installed and on PATH?"
            )

        family = self.classifier.classify(path)
        return Tool(
            path=path,
            family=family,
            env=env,
            wrapper_path=wrapper,
            wrapper_args=list(extra_args),
            cuda=cuda,
            include_paths=include_paths,
            lib_paths=lib_paths,
        )

    def resolve_archiver(
        self,
        env_resolver: EnvironmentResolver,
        explicit: Optional[Path] = None
    ) -> Archiver:
        """Resolve the archiver.

        The archiver dialect follows the target OS (lib.exe for MSVC targets),
        since archivers do not identify themselves the way compilers do.

        Raises:
            ToolNotFoundError: If the archiver cannot be found
        """
        request = env_resolver.resolve_archiver(explicit=explicit)
        msvc = env_resolver.target.is_msvc

        if request.is_default and self.msvc_toolchain is not None:
            return self._visual_studio_archiver(self.msvc_toolchain)

        path = self.which(request.program)
        if path is None and self._can_locate_msvc(request, env_resolver):
            # The compiler came from CC or an explicit path; lib.exe still
            # lives in the Visual Studio installation.
            toolchain = self.locator.locate(env_resolver.target, env_resolver.host)
            self.msvc_toolchain = toolchain
            return self._visual_studio_archiver(toolchain)

        if path is None:
            raise ToolNotFoundError(
                f"Failed to find archiver {request.program!r} (from {request.origin})"
            )
        return Archiver(path=path, msvc=msvc, args=request.words[1:])

    def _visual_studio_archiver(self, toolchain: MsvcToolchain) -> Archiver:
        lib_exe = toolchain.tool_path("lib.exe")
        if not lib_exe.exists():
            raise ToolNotFoundError(f"lib.exe not found next to {toolchain.cl_path}")
        return Archiver(
            path=lib_exe,
            msvc=True,
            env=toolchain.to_env(self.environ.get(EnvVar.PATH)),
        )

    @staticmethod
    def _can_locate_msvc(request: ToolRequest, env_resolver: EnvironmentResolver) -> bool:
        return request.is_default and env_resolver.target.is_msvc
