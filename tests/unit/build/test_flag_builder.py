"""
Unit tests for FlagBuilder.

Exercises the per-family flag tables and the emission order without running
any compiler.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from ccbuild.build.flag_builder import FlagBuilder, FlagSettings
from ccbuild.config.build_config import BuildConfig
from ccbuild.config.target import TargetTriple
from ccbuild.toolchain.tool import Tool, ToolFamily

LINUX = TargetTriple.parse("x86_64-unknown-linux-gnu")
I686 = TargetTriple.parse("i686-unknown-linux-gnu")
DARWIN = TargetTriple.parse("x86_64-apple-darwin")
WINDOWS = TargetTriple.parse("x86_64-pc-windows-msvc")


def build_args(family=ToolFamily.GNU, config=None, cuda=False, **settings):
    settings.setdefault("target", LINUX)
    settings.setdefault("host", LINUX)
    tool = Tool(path=Path("cc"), family=family, cuda=cuda)
    builder = FlagBuilder(config or BuildConfig(), FlagSettings(**settings))
    return builder.build(tool).args


class TestGnuFlags:
    """Test suite for GNU flag synthesis."""

    def test_defaults(self):
        args = build_args(opt_level="2")

        assert "-O2" in args
        assert "-ffunction-sections" in args
        assert "-fdata-sections" in args
        assert "-fPIC" in args
        assert "-m64" in args
        assert "-Wall" in args
        assert "-Wextra" in args
        assert "-g" not in args

    def test_i686_width(self):
        assert "-m32" in build_args(target=I686, host=LINUX)

    def test_opt_level_s(self):
        args = build_args(opt_level="s")

        assert "-Os" in args
        assert not any(a in args for a in ("-O1", "-O2", "-O3", "-Oz"))

    def test_opt_level_z_is_s_for_gcc(self):
        assert "-Os" in build_args(opt_level="z")

    def test_debug(self):
        assert "-g" in build_args(debug=True)

    def test_no_pic(self):
        args = build_args(pic=False, use_plt=False)

        assert "-fPIC" not in args
        assert "-fno-plt" not in args

    def test_no_plt(self):
        assert "-fno-plt" in build_args(use_plt=False)

    def test_warnings_disabled(self):
        args = build_args(warnings=False, extra_warnings=True)

        assert "-Wall" not in args
        assert "-Wextra" in args

    def test_warnings_into_errors(self):
        config = BuildConfig(warnings_into_errors=True)

        assert "-Werror" in build_args(config=config)

    def test_shared_and_static(self):
        assert "-shared" in build_args(config=BuildConfig(shared_flag=True))
        args = build_args(config=BuildConfig(shared_flag=False, static_flag=True))
        assert "-static" in args
        assert "-shared" not in args

    def test_static_crt(self):
        assert "-static" in build_args(static_crt=True)

    def test_static_crt_respects_explicit_static_flag_off(self):
        args = build_args(config=BuildConfig(static_flag=False), static_crt=True)

        assert "-static" not in args

    def test_stdlib_ignored_for_gcc(self):
        config = BuildConfig(cpp=True, cpp_set_stdlib="c++")

        assert "-stdlib=libc++" not in build_args(config=config)

    def test_no_defaults(self):
        """Test CRATE_CC_NO_DEFAULTS drops the family defaults only."""
        config = BuildConfig(flags=["-v"])
        args = build_args(config=config, no_defaults=True)

        assert "-O0" not in args
        assert "-fPIC" not in args
        assert "-Wall" in args
        assert "-v" in args

    def test_include_and_define(self):
        config = BuildConfig(include_dirs=[Path("foo/bar")], definitions=[("FOO", "bar"), ("BAR", None)])
        args = build_args(config=config)

        assert f"-I{Path('foo/bar')}" in args
        assert "-DFOO=bar" in args
        assert "-DBAR" in args


class TestClangFlags:
    """Test suite for Clang flag synthesis."""

    def test_no_width_flag(self):
        args = build_args(family=ToolFamily.CLANG, target=DARWIN, host=DARWIN)

        assert "-m64" not in args
        assert "-fPIC" in args

    def test_cross_target(self):
        args = build_args(family=ToolFamily.CLANG, target=TargetTriple.parse("aarch64-unknown-linux-gnu"))

        assert "--target=aarch64-unknown-linux-gnu" in args

    def test_native_has_no_target(self):
        args = build_args(family=ToolFamily.CLANG)

        assert not any(a.startswith("--target=") for a in args)

    def test_opt_level_z(self):
        assert "-Oz" in build_args(family=ToolFamily.CLANG, opt_level="z")

    def test_stdlib_for_cpp(self):
        config = BuildConfig(cpp=True, cpp_set_stdlib="c++")

        assert "-stdlib=libc++" in build_args(family=ToolFamily.CLANG, config=config)

    def test_stdlib_not_for_c(self):
        config = BuildConfig(cpp_set_stdlib="c++")

        assert "-stdlib=libc++" not in build_args(family=ToolFamily.CLANG, config=config)

    def test_static_crt_not_on_apple(self):
        args = build_args(family=ToolFamily.CLANG, target=DARWIN, host=DARWIN, static_crt=True)

        assert "-static" not in args


class TestMsvcFlags:
    """Test suite for MSVC flag synthesis."""

    def msvc(self, **kwargs):
        kwargs.setdefault("target", WINDOWS)
        kwargs.setdefault("host", WINDOWS)
        kwargs.setdefault("pic", False)
        return build_args(family=ToolFamily.MSVC, **kwargs)

    def test_defaults(self):
        args = self.msvc(opt_level="2")

        assert "/nologo" in args
        assert "/O2" in args
        assert "/MD" in args
        assert "/W4" in args
        assert "/Z7" not in args

    @pytest.mark.parametrize("level,flag", [
        ("0", "/Od"), ("1", "/O1"), ("s", "/O1"), ("z", "/O1"), ("2", "/O2"), ("3", "/O2"),
    ])
    def test_opt_levels(self, level, flag):
        assert flag in self.msvc(opt_level=level)

    def test_debug(self):
        assert "/Z7" in self.msvc(debug=True)

    def test_static_crt(self):
        args = self.msvc(static_crt=True)

        assert "/MT" in args
        assert "/MD" not in args

    def test_unsupported_options_omitted(self):
        """Test options MSVC cannot express produce nothing."""
        config = BuildConfig(shared_flag=True, static_flag=True, cpp=True, cpp_set_stdlib="c++")
        args = self.msvc(config=config, pic=True, use_plt=False)

        for flag in ("-fPIC", "-fno-plt", "-shared", "-static", "-stdlib=libc++", "-Wextra", "-m64"):
            assert flag not in args

    def test_warnings_into_errors(self):
        assert "/WX" in self.msvc(config=BuildConfig(warnings_into_errors=True))

    def test_include_and_define(self):
        config = BuildConfig(include_dirs=[Path("inc")], definitions=[("FOO", "bar"), ("BAR", None)])
        args = self.msvc(config=config)

        assert "/Iinc" in args
        assert "/DFOO=bar" in args
        assert "/DBAR" in args


class TestWindowsGnu:
    def test_pic_never_on_windows(self):
        target = TargetTriple.parse("x86_64-pc-windows-gnu")

        assert "-fPIC" not in build_args(target=target, host=target, pic=True)


class TestCudaFlags:
    """Test suite for nvcc flag synthesis."""

    def test_host_flags_wrapped(self):
        args = build_args(cuda=True, debug=True)

        assert args[args.index("-fPIC") - 1] == "-Xcompiler"
        assert "-G" in args
        assert "-m64" not in args


class TestOrdering:
    """Test suite for deterministic emission order."""

    def test_order(self):
        """Test defaults, env flags, includes, defines, user flags, then probed flags."""
        config = BuildConfig(
            include_dirs=[Path("inc")],
            definitions=[("FOO", "1")],
            flags=["-user"],
            flags_supported=["-probed", "-rejected"],
        )
        prober = Mock()
        prober.is_supported.side_effect = lambda tool, flag: flag == "-probed"
        tool = Tool(path=Path("cc"), family=ToolFamily.GNU)
        settings = FlagSettings(target=LINUX, host=LINUX, env_flags=["-env"])

        args = FlagBuilder(config, settings).build(tool, prober).args

        positions = [args.index(flag) for flag in ("-O0", "-env", "-Iinc", "-DFOO=1", "-user", "-probed")]
        assert positions == sorted(positions)
        assert "-rejected" not in args
        assert args[-1] == "-probed"

    def test_warning_overridable_by_user_flag(self):
        config = BuildConfig(flags=["-Wno-missing-field-initializers"])
        args = build_args(config=config)

        assert args.index("-Wall") < args.index("-Wno-missing-field-initializers")

    def test_deterministic(self):
        config = BuildConfig(include_dirs=[Path("a"), Path("b")], definitions=[("X", None), ("X", "2")])

        assert build_args(config=config) == build_args(config=config)

    def test_duplicate_defines_kept_in_order(self):
        config = BuildConfig(definitions=[("X", "1"), ("X", "2")])
        args = build_args(config=config)

        assert args.index("-DX=1") < args.index("-DX=2")

    def test_base_tool_not_modified(self):
        tool = Tool(path=Path("cc"), family=ToolFamily.GNU)

        FlagBuilder(BuildConfig(flags=["-v"]), FlagSettings(target=LINUX, host=LINUX)).build(tool)

        assert tool.args == []
