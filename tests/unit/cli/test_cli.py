"""
Unit tests for the ccbuild command-line interface.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ccbuild.cli import BuildOptions, main, make_build
from ccbuild.errors import ToolInvocationFailedError, UnsupportedTargetHostError
from ccbuild.toolchain.tool import Tool, ToolFamily


def run_main(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestMakeBuild:
    """Tests for translating options into a Build."""

    def test_options_applied(self):
        options = BuildOptions(
            sources=[Path("a.c")],
            includes=[Path("inc")],
            defines=["FOO=1", "BAR"],
            flags=["-v"],
            flags_if_supported=["-Wall"],
            cpp=True,
            opt_level="2",
            debug=True,
            target="x86_64-unknown-linux-gnu",
            out_dir=Path("out"),
            jobs=3,
        )

        config = make_build(options).config

        assert config.files == [Path("a.c")]
        assert config.include_dirs == [Path("inc")]
        assert config.definitions == [("FOO", "1"), ("BAR", None)]
        assert config.flags == ["-v"]
        assert config.flags_supported == ["-Wall"]
        assert config.cpp is True
        assert config.opt_level == "2"
        assert config.debug is True
        assert config.target == "x86_64-unknown-linux-gnu"
        assert config.out_dir == Path("out")
        assert config.jobs == 3

    def test_unset_options_left_unset(self):
        config = make_build(BuildOptions()).config

        assert config.opt_level is None
        assert config.debug is None
        assert config.target is None

    def test_cuda(self):
        config = make_build(BuildOptions(cuda=True)).config

        assert config.cuda and config.cpp


class TestMain:
    """Tests for command dispatch and exit codes."""

    def test_no_command_shows_help(self, capsys):
        assert run_main([]) == 0
        assert "usage: ccbuild" in capsys.readouterr().out

    @patch("ccbuild.cli.Build")
    def test_compile(self, mock_build_cls, tmp_path, capsys):
        build = MagicMock()
        mock_build_cls.return_value = build
        build.files.return_value = build
        build.includes.return_value = build
        build.verbose.return_value = build
        build.show_progress.return_value = build
        build.cargo_metadata.return_value = build
        build.compile.return_value = tmp_path / "libfoo.a"

        code = run_main(["compile", "-n", "foo", "foo.c", "bar.c"])

        assert code == 0
        build.files.assert_called_once_with([Path("foo.c"), Path("bar.c")])
        build.compile.assert_called_once_with("foo")
        assert "libfoo.a" in capsys.readouterr().out

    @patch("ccbuild.cli.Build")
    def test_compile_failure_exit_code(self, mock_build_cls, capsys):
        build = MagicMock()
        mock_build_cls.return_value = build
        for name in ("files", "includes", "verbose", "show_progress", "cargo_metadata"):
            getattr(build, name).return_value = build
        build.compile.side_effect = ToolInvocationFailedError(
            "Compilation failed for foo.c", returncode=1, command=["cc", "-c", "foo.c"]
        )

        assert run_main(["compile", "-n", "foo", "foo.c"]) == 1
        assert "ToolInvocationFailed" in capsys.readouterr().err

    @patch("ccbuild.cli.Build")
    def test_compiler_command(self, mock_build_cls, capsys):
        build = MagicMock()
        mock_build_cls.return_value = build
        for name in ("files", "includes", "verbose", "show_progress"):
            getattr(build, name).return_value = build
        build.get_compiler.return_value = Tool(
            path=Path("/usr/bin/cc"), family=ToolFamily.GNU, args=["-O0"]
        )

        assert run_main(["compiler"]) == 0
        out = capsys.readouterr().out
        assert "family:   gnu" in out
        assert "-O0" in out

    @patch("ccbuild.cli.Build")
    def test_unsupported_target(self, mock_build_cls, capsys):
        build = MagicMock()
        mock_build_cls.return_value = build
        for name in ("files", "includes", "verbose", "show_progress", "target"):
            getattr(build, name).return_value = build
        build.get_compiler.side_effect = UnsupportedTargetHostError("foo-bar-baz")

        assert run_main(["compiler", "--target", "foo-bar-baz"]) == 1
        assert "UnsupportedTargetHost" in capsys.readouterr().err

    def test_invalid_opt_level(self, capsys):
        assert run_main(["compiler", "-O", "fast"]) == 2
        assert "Invalid optimization level" in capsys.readouterr().err

    @patch("ccbuild.cli.Build")
    def test_expand_writes_bytes(self, mock_build_cls, capsysbinary):
        build = MagicMock()
        mock_build_cls.return_value = build
        for name in ("files", "includes", "verbose", "show_progress"):
            getattr(build, name).return_value = build
        build.expand.return_value = b"int foo(void);\n"

        assert run_main(["expand", "foo.c"]) == 0
        assert capsysbinary.readouterr().out == b"int foo(void);\n"

    def test_compile_requires_sources(self):
        assert run_main(["compile", "-n", "foo"]) == 2
