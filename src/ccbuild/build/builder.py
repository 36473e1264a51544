"""Fluent build configuration and terminal actions.

This module provides ``Build``, the caller-facing entry point: a chain of
setters populates a ``BuildConfig`` and a terminal action compiles, probes or
preprocesses with a private snapshot of it.

Design:
    - Setters return self so calls can be chained
    - Terminal actions never mutate the configuration
    - Each terminal action gets a fresh BuildSession (tool, caches)
"""

from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..config.build_config import BuildConfig, OptLevel
from ..config.env_vars import EnvVar
from ..toolchain.tool import Tool
from ..toolchain.windows_registry import InstallationSource
from .archive_creator import ArchiveCreator
from .compilation_executor import CompilationExecutor
from .compilation_orchestrator import CompilationOrchestrator, CompileJob, object_path_for
from .flag_builder import VALID_OPT_LEVELS
from .session import BuildSession

PathLike = Union[str, Path]


class Build:
    """Configuration for compiling C/C++/CUDA sources into a static library.

    Example usage:
        Build().file("foo.c").include("include").define("FOO", "1").compile("foo")
    """

    def __init__(self, installation_source: Optional[InstallationSource] = None):
        """Initialize an empty build.

        Args:
            installation_source: Visual Studio metadata source (default: registry/vswhere)
        """
        self.config = BuildConfig()
        self.installation_source = installation_source
        self._verbose = False
        self._show_progress = False

    # Inputs

    def file(self, path: PathLike) -> "Build":
        """Add a source file to compile."""
        self.config.files.append(Path(path))
        return self

    def files(self, paths: Iterable[PathLike]) -> "Build":
        """Add several source files, in order."""
        for path in paths:
            self.file(path)
        return self

    def object(self, path: PathLike) -> "Build":
        """Add an already compiled object file to the archive."""
        self.config.objects.append(Path(path))
        return self

    def include(self, directory: PathLike) -> "Build":
        """Add an include directory."""
        self.config.include_dirs.append(Path(directory))
        return self

    def includes(self, directories: Iterable[PathLike]) -> "Build":
        for directory in directories:
            self.include(directory)
        return self

    def define(self, name: str, value: Optional[str] = None) -> "Build":
        """Add a preprocessor define (``-Dname`` or ``-Dname=value``)."""
        self.config.definitions.append((name, value))
        return self

    def flag(self, flag: str) -> "Build":
        """Add an arbitrary compiler flag."""
        self.config.flags.append(flag)
        return self

    def flag_if_supported(self, flag: str) -> "Build":
        """Add a flag that is only used if the compiler accepts it."""
        self.config.flags_supported.append(flag)
        return self

    # Switches

    def cpp(self, enabled: bool = True) -> "Build":
        self.config.cpp = enabled
        return self

    def cuda(self, enabled: bool = True) -> "Build":
        """Compile with nvcc; implies C++."""
        self.config.cuda = enabled
        if enabled:
            self.config.cpp = True
        return self

    def warnings(self, enabled: bool = True) -> "Build":
        self.config.warnings = enabled
        return self

    def extra_warnings(self, enabled: bool = True) -> "Build":
        self.config.extra_warnings = enabled
        return self

    def warnings_into_errors(self, enabled: bool = True) -> "Build":
        self.config.warnings_into_errors = enabled
        return self

    def shared_flag(self, enabled: bool = True) -> "Build":
        self.config.shared_flag = enabled
        return self

    def static_flag(self, enabled: bool = True) -> "Build":
        self.config.static_flag = enabled
        return self

    def pic(self, enabled: bool = True) -> "Build":
        self.config.pic = enabled
        return self

    def use_plt(self, enabled: bool = True) -> "Build":
        self.config.use_plt = enabled
        return self

    def static_crt(self, enabled: bool = True) -> "Build":
        self.config.static_crt = enabled
        return self

    def debug(self, enabled: bool = True) -> "Build":
        self.config.debug = enabled
        return self

    def opt_level(self, level: OptLevel) -> "Build":
        """Set the optimization level: 0-3, "s" or "z".

        Raises:
            ValueError: If the level is not one of the accepted values
        """
        text = str(level)
        if text not in VALID_OPT_LEVELS:
            raise ValueError(
                f"Invalid optimization level {level!r}; expected one of {', '.join(VALID_OPT_LEVELS)}"
            )
        self.config.opt_level = text
        return self

    def opt_level_str(self, level: str) -> "Build":
        return self.opt_level(level)

    def cpp_link_stdlib(self, stdlib: Optional[str]) -> "Build":
        """Set the C++ standard library to link.

        None restores the target default; NO_STDLIB links none.
        """
        self.config.cpp_link_stdlib = stdlib
        return self

    def cpp_set_stdlib(self, stdlib: Optional[str]) -> "Build":
        """Force the C++ standard library at compile time (Clang ``-stdlib=lib<name>``).

        Also links it unless cpp_link_stdlib was set.
        """
        self.config.cpp_set_stdlib = stdlib
        if stdlib is not None and self.config.cpp_link_stdlib is None:
            self.config.cpp_link_stdlib = stdlib
        return self

    # Toolchain selection

    def target(self, triple: str) -> "Build":
        self.config.target = triple
        return self

    def host(self, triple: str) -> "Build":
        self.config.host = triple
        return self

    def out_dir(self, directory: PathLike) -> "Build":
        self.config.out_dir = Path(directory)
        return self

    def compiler(self, path: PathLike) -> "Build":
        """Use this compiler instead of the environment or target default."""
        self.config.compiler = Path(path)
        return self

    def archiver(self, path: PathLike) -> "Build":
        """Use this archiver instead of the environment or target default."""
        self.config.archiver = Path(path)
        return self

    def cargo_metadata(self, enabled: bool = True) -> "Build":
        """Print cargo link directives after a successful compile."""
        self.config.cargo_metadata = enabled
        return self

    def jobs(self, count: int) -> "Build":
        """Limit the number of concurrent compiler processes."""
        self.config.jobs = count
        return self

    def set_env(self, name: str, value: str) -> "Build":
        """Override an environment variable for every lookup and child process."""
        self.config.env[name] = value
        return self

    def verbose(self, enabled: bool = True) -> "Build":
        """Print every command that is run."""
        self._verbose = enabled
        return self

    def show_progress(self, enabled: bool = True) -> "Build":
        """Show a progress bar while compiling."""
        self._show_progress = enabled
        return self

    # Terminal actions

    def _session(self) -> BuildSession:
        return BuildSession(self.config.snapshot(), installation_source=self.installation_source)

    def get_compiler(self) -> Tool:
        """Return the fully configured compiler without compiling anything.

        Raises:
            BuildError: If the compiler cannot be resolved
        """
        return self._session().compiler()

    def is_flag_supported(self, flag: str) -> bool:
        """Check whether the configured compiler accepts ``flag``.

        Raises:
            BuildError: If the compiler cannot be resolved or probed
        """
        session = self._session()
        tool = session.flag_builder().build_base(session.base_tool())
        return session.prober.is_supported(tool, flag)

    def compile(self, name: str) -> Path:
        """Compile every source file and archive the objects as ``name``.

        Args:
            name: Library name ("foo" -> libfoo.a or foo.lib)

        Returns:
            Path to the static library

        Raises:
            UnsupportedTargetHostError: If no toolchain is known for the target
            ToolNotFoundError: If the compiler or archiver cannot be found
            ToolInvocationFailedError: If a compile or the archiver fails
            IoFailureError: If a process cannot be spawned or a file written
        """
        session = self._session()
        tool = session.compiler()
        archiver = session.archiver()

        jobs = [
            CompileJob(source=source, object_path=object_path_for(session.out_dir, source))
            for source in session.config.files
        ]
        executor = CompilationExecutor(session.environ, verbose=self._verbose)
        orchestrator = CompilationOrchestrator(
            executor, jobs=session.jobs(), show_progress=self._show_progress
        )
        objects = orchestrator.compile_objects(tool, jobs)
        objects.extend(session.config.objects)

        archive_path = session.out_dir / archiver.library_filename(name)
        ArchiveCreator(session.environ, show_progress=self._verbose).create_archive(
            archiver, archive_path, objects
        )

        if session.config.cargo_metadata:
            self._print_cargo_metadata(session, archive_path)

        return archive_path

    def expand(self) -> bytes:
        """Run the preprocessor on every source file and return its output.

        Raises:
            BuildError: If the compiler cannot be resolved or preprocessing fails
        """
        session = self._session()
        tool = session.compiler()
        executor = CompilationExecutor(session.environ, verbose=self._verbose)
        return CompilationOrchestrator(executor).expand(tool, session.config.files)

    @staticmethod
    def _print_cargo_metadata(session: BuildSession, archive_path: Path) -> None:
        lib_name = archive_path.name
        lib_name = lib_name[3:-2] if lib_name.endswith(".a") else lib_name[:-4]
        print(f"cargo:rustc-link-lib=static={lib_name}")
        print(f"cargo:rustc-link-search=native={session.out_dir.resolve()}")

        if session.is_cpp:
            stdlib = session.link_stdlib()
            if stdlib:
                print(f"cargo:rustc-link-lib={stdlib}")

        printed: List[str] = []
        for var in session.env_resolver.consulted:
            if var != EnvVar.PATH and var not in printed:
                printed.append(var)
                print(f"cargo:rerun-if-env-changed={var}")
