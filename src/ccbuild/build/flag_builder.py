"""Compilation Flag Builder.

This module maps the build configuration onto family-specific compiler
arguments.

Design:
    - One flag table per family (GNU, Clang, MSVC), selected by exhaustive
      dispatch on ToolFamily
    - Fixed emission order: family defaults, environment flags, include
      paths, defines, user flags, then probed flags
    - Options a family cannot express are omitted, never an error
"""

import copy
from dataclasses import dataclass, field
from typing import List, Optional

from ..config.build_config import BuildConfig
from ..config.target import TargetTriple
from ..toolchain.tool import Tool, ToolFamily

VALID_OPT_LEVELS = ("0", "1", "2", "3", "s", "z")


@dataclass
class FlagSettings:
    """Configuration values resolved against the environment and target.

    Attributes:
        target: Target triple
        host: Host triple
        opt_level: One of VALID_OPT_LEVELS
        debug: Emit debug info
        pic: Position-independent code
        use_plt: Use the PLT (False adds -fno-plt)
        static_crt: Link the C runtime statically
        warnings: Default warnings
        extra_warnings: Extra warnings
        env_flags: Flags from CFLAGS/CXXFLAGS
        no_defaults: Skip family default flags
    """

    target: TargetTriple
    host: TargetTriple
    opt_level: str = "0"
    debug: bool = False
    pic: bool = True
    use_plt: bool = True
    static_crt: bool = False
    warnings: bool = True
    extra_warnings: bool = True
    env_flags: List[str] = field(default_factory=list)
    no_defaults: bool = False


class FlagBuilder:
    """Builds the base compiler arguments for one terminal action.

    Example usage:
        builder = FlagBuilder(config, settings)
        tool = builder.build(base_tool, prober)
        print(tool.to_command())
    """

    def __init__(self, config: BuildConfig, settings: FlagSettings):
        """Initialize flag builder.

        Args:
            config: Build configuration
            settings: Values resolved from environment and target
        """
        self.config = config
        self.settings = settings

    @property
    def is_cpp(self) -> bool:
        return self.config.cpp or self.config.cuda

    def build(self, base: Tool, prober=None) -> Tool:
        """Return a copy of ``base`` carrying every configured flag.

        Args:
            base: Resolved compiler without flags
            prober: FlagSupportProber for flags_supported (None drops them)

        Returns:
            New Tool; ``base`` is not modified
        """
        tool = self.build_base(base)

        if prober is not None:
            probe_base = copy.deepcopy(tool)
            for flag in self.config.flags_supported:
                if prober.is_supported(probe_base, flag):
                    tool.args.append(flag)

        return tool

    def build_base(self, base: Tool) -> Tool:
        """Return a copy of ``base`` with every flag except probed ones."""
        tool = copy.deepcopy(base)

        if not self.settings.no_defaults:
            self.add_default_flags(tool)
        self.add_option_flags(tool)

        tool.args.extend(self.settings.env_flags)

        for directory in self.config.include_dirs:
            tool.args.append(tool.family.include_flag(directory))

        for name, value in self.config.definitions:
            tool.args.append(tool.family.define_flag(name, value))

        tool.args.extend(self.config.flags)
        return tool

    def add_default_flags(self, tool: Tool) -> None:
        """Add optimization, debug, codegen and runtime defaults."""
        family = tool.family
        if family is ToolFamily.MSVC:
            self._add_msvc_defaults(tool)
        elif family is ToolFamily.GNU or family is ToolFamily.CLANG:
            self._add_gnu_like_defaults(tool)
        else:
            raise AssertionError(f"Unhandled tool family: {family}")

    def add_option_flags(self, tool: Tool) -> None:
        """Add stdlib, warning and link-mode flags requested by the configuration."""
        family = tool.family
        settings = self.settings

        if family is ToolFamily.MSVC:
            if settings.warnings:
                tool.args.append("/W4")
            if self.config.warnings_into_errors:
                tool.args.append("/WX")
            return

        if family is ToolFamily.CLANG and self.is_cpp and self.config.cpp_set_stdlib:
            tool.push_cc_arg(f"-stdlib=lib{self.config.cpp_set_stdlib}")

        if settings.warnings:
            tool.push_cc_arg("-Wall")
        if settings.extra_warnings:
            tool.push_cc_arg("-Wextra")
        if self.config.warnings_into_errors:
            tool.push_cc_arg("-Werror")

        if self.config.shared_flag:
            tool.args.append("-shared")
        if self.config.static_flag and "-static" not in tool.args:
            tool.args.append("-static")

    def _add_gnu_like_defaults(self, tool: Tool) -> None:
        settings = self.settings
        target = settings.target
        family = tool.family

        opt = settings.opt_level
        if opt == "z" and family is ToolFamily.GNU:
            # Older GCC releases reject -Oz.
            opt = "s"
        tool.args.append(f"-O{opt}")

        if settings.debug:
            tool.args.append("-g")
            if tool.cuda:
                tool.args.append("-G")

        tool.push_cc_arg("-ffunction-sections")
        tool.push_cc_arg("-fdata-sections")

        if settings.pic and not target.is_windows:
            tool.push_cc_arg("-fPIC")
            if not settings.use_plt:
                tool.push_cc_arg("-fno-plt")

        if family is ToolFamily.GNU and not tool.cuda:
            if target.is_x86_64:
                tool.args.append("-m64")
            elif target.is_x86_32:
                tool.args.append("-m32")

        if family is ToolFamily.CLANG and target.triple != settings.host.triple:
            tool.args.append(f"--target={target.triple}")

        if (
            settings.static_crt
            and self.config.static_flag is None
            and not target.is_apple
            and not target.is_windows
        ):
            tool.args.append("-static")

    def _add_msvc_defaults(self, tool: Tool) -> None:
        settings = self.settings

        tool.args.append("/nologo")
        tool.args.append("/MT" if settings.static_crt else "/MD")

        opt_flag = self.msvc_opt_flag(settings.opt_level)
        if opt_flag:
            tool.args.append(opt_flag)

        if settings.debug:
            tool.args.append("/Z7")

    @staticmethod
    def msvc_opt_flag(opt_level: str) -> Optional[str]:
        if opt_level == "0":
            return "/Od"
        if opt_level in ("1", "s", "z"):
            return "/O1"
        if opt_level in ("2", "3"):
            return "/O2"
        return None
