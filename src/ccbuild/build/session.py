"""Build session.

A ``BuildSession`` holds everything one terminal action derives from a
configuration snapshot: resolved target/host, settings read from the
environment, and the caches shared by the action's workers.

Design:
    - Created per terminal action and discarded afterwards
    - Environment overrides are merged over os.environ once, up front
    - Compiler classification and probe results are cached here, never persisted
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

import psutil

from ..config.build_config import NO_STDLIB, BuildConfig
from ..config.env_vars import EnvironmentResolver, EnvVar
from ..config.target import TargetTriple, ToolchainKind, detect_host_triple
from ..toolchain.classifier import ToolClassifier
from ..toolchain.tool import Archiver, Tool
from ..toolchain.tool_resolver import ToolResolver
from ..toolchain.windows_registry import InstallationSource, WindowsToolchainLocator
from .flag_builder import VALID_OPT_LEVELS, FlagBuilder, FlagSettings
from .flag_prober import FlagSupportProber

DEFAULT_OUT_DIR = Path("build")


class BuildSession:
    """State for one terminal action.

    Example usage:
        session = BuildSession(config.snapshot())
        tool = session.compiler()
        archiver = session.archiver()
    """

    def __init__(
        self,
        config: BuildConfig,
        installation_source: Optional[InstallationSource] = None
    ):
        """Initialize build session.

        Args:
            config: Configuration snapshot owned by this session
            installation_source: Visual Studio metadata source (default: registry/vswhere)
        """
        self.config = config
        self.environ: Dict[str, str] = dict(os.environ)
        self.environ.update(config.env)

        self.host = TargetTriple.parse(
            config.host or self._getenv(EnvVar.HOST) or detect_host_triple()
        )
        self.target = TargetTriple.parse(
            config.target or self._getenv(EnvVar.TARGET) or self.host.triple
        )

        self.env_resolver = EnvironmentResolver(self.environ, self.target, self.host)
        self.env_resolver.consulted.extend([EnvVar.TARGET, EnvVar.HOST])

        self.out_dir = self._resolve_out_dir()
        self.classifier = ToolClassifier(self.environ)
        self.prober = FlagSupportProber(self.out_dir, self.environ, cpp=self.is_cpp, cuda=config.cuda)
        self.locator = WindowsToolchainLocator(source=installation_source, environ=self.environ)
        self.tools = ToolResolver(self.environ, self.classifier, self.locator)
        self._base_tool: Optional[Tool] = None

    @property
    def is_cpp(self) -> bool:
        return self.config.cpp or self.config.cuda

    def _getenv(self, name: str) -> Optional[str]:
        value = self.environ.get(name)
        return value if value and value.strip() else None

    def _resolve_out_dir(self) -> Path:
        if self.config.out_dir is not None:
            return Path(self.config.out_dir)
        value = self.env_resolver.get(EnvVar.OUT_DIR)
        return Path(value) if value else DEFAULT_OUT_DIR

    def opt_level(self) -> str:
        if self.config.opt_level is not None:
            return str(self.config.opt_level)
        value = self.env_resolver.get(EnvVar.OPT_LEVEL)
        if value is None:
            return "0"
        if value not in VALID_OPT_LEVELS:
            logging.warning(f"Ignoring invalid {EnvVar.OPT_LEVEL}={value!r}; using 0")
            return "0"
        return value

    def debug(self) -> bool:
        if self.config.debug is not None:
            return self.config.debug
        value = self.env_resolver.get(EnvVar.DEBUG)
        return value is not None and value.lower() in ("true", "1")

    def jobs(self) -> int:
        if self.config.jobs is not None:
            return max(1, self.config.jobs)
        value = self.env_resolver.get(EnvVar.NUM_JOBS)
        if value is not None:
            try:
                return max(1, int(value))
            except ValueError:
                logging.warning(f"Ignoring invalid {EnvVar.NUM_JOBS}={value!r}")
        return psutil.cpu_count() or 1

    def static_crt(self) -> bool:
        if self.config.static_crt is not None:
            return self.config.static_crt
        features = self.env_resolver.get(EnvVar.TARGET_FEATURES) or ""
        return "crt-static" in features.split(",")

    def pic(self) -> bool:
        if self.config.pic is not None:
            return self.config.pic
        return not (self.target.is_windows or self.target.is_bare_metal)

    def no_defaults(self) -> bool:
        return self.env_resolver.get(EnvVar.NO_DEFAULTS) is not None

    def settings(self) -> FlagSettings:
        """Resolve every tri-state switch against the environment and target."""
        flags_env_set = self.env_resolver.has_flags_env(self.is_cpp)
        warnings = self.config.warnings
        extra_warnings = self.config.extra_warnings
        flags_var = EnvVar.CXXFLAGS if self.is_cpp else EnvVar.CFLAGS

        return FlagSettings(
            target=self.target,
            host=self.host,
            opt_level=self.opt_level(),
            debug=self.debug(),
            pic=self.pic(),
            use_plt=self.config.use_plt if self.config.use_plt is not None else True,
            static_crt=self.static_crt(),
            warnings=warnings if warnings is not None else not flags_env_set,
            extra_warnings=extra_warnings if extra_warnings is not None else not flags_env_set,
            env_flags=self.env_resolver.flags(flags_var),
            no_defaults=self.no_defaults(),
        )

    def link_stdlib(self) -> Optional[str]:
        """C++ standard library to link, or None for no library."""
        stdlib = self.config.cpp_link_stdlib
        if stdlib == NO_STDLIB:
            return None
        if stdlib is not None:
            return stdlib

        target = self.target
        if target.kind is ToolchainKind.MSVC:
            return None
        if target.is_apple or "freebsd" in target.triple or "openbsd" in target.triple:
            return "c++"
        if target.kind is ToolchainKind.ANDROID:
            return "c++_shared"
        return "stdc++"

    def base_tool(self) -> Tool:
        """Resolve and classify the compiler, without flags."""
        if self._base_tool is None:
            self._base_tool = self.tools.resolve_compiler(
                self.env_resolver,
                cpp=self.config.cpp,
                cuda=self.config.cuda,
                explicit=self.config.compiler,
            )
        return self._base_tool

    def flag_builder(self) -> FlagBuilder:
        return FlagBuilder(self.config, self.settings())

    def compiler(self) -> Tool:
        """Return the fully configured compiler, probing supported flags."""
        return self.flag_builder().build(self.base_tool(), self.prober)

    def archiver(self) -> Archiver:
        """Resolve the archiver (after the compiler, so MSVC discovery is shared)."""
        return self.tools.resolve_archiver(self.env_resolver, explicit=self.config.archiver)
