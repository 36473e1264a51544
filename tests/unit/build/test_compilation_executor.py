"""
Unit tests for CompilationExecutor.
"""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from ccbuild.build.compilation_executor import CompilationExecutor
from ccbuild.errors import IoFailureError, ToolInvocationFailedError
from ccbuild.toolchain.tool import Tool, ToolFamily


def completed(returncode=0, stdout="", stderr=""):
    result = Mock()
    result.returncode = returncode
    result.stdout = stdout
    result.stderr = stderr
    return result


class TestCompilationExecutor:
    """Test suite for CompilationExecutor."""

    @pytest.fixture
    def tool(self):
        return Tool(path=Path("/usr/bin/cc"), family=ToolFamily.GNU, args=["-O2"], env={"X": "1"})

    @pytest.fixture
    def source(self, tmp_path):
        src = tmp_path / "foo.c"
        src.write_text("int foo(void) { return 0; }\n")
        return src

    @patch('subprocess.run')
    def test_compile_object(self, mock_run, tool, source, tmp_path):
        mock_run.return_value = completed()
        obj = tmp_path / "out" / "foo.o"

        result = CompilationExecutor({"PATH": "/bin"}).compile_object(tool, source, obj)

        assert result == obj
        assert obj.parent.is_dir()
        cmd = mock_run.call_args[0][0]
        assert cmd == [str(Path("/usr/bin/cc")), "-O2", "-o", str(obj), "-c", str(source)]
        assert mock_run.call_args[1]["env"] == {"PATH": "/bin", "X": "1"}
        assert "timeout" not in mock_run.call_args[1]

    @patch('subprocess.run')
    def test_compile_failure_carries_output(self, mock_run, tool, source, tmp_path):
        mock_run.return_value = completed(returncode=1, stderr="foo.c:1: error: boom")

        with pytest.raises(ToolInvocationFailedError) as exc_info:
            CompilationExecutor({}).compile_object(tool, source, tmp_path / "foo.o")

        error = exc_info.value
        assert error.returncode == 1
        assert "boom" in error.stderr
        assert "boom" in str(error)
        assert str(source) in error.command

    def test_missing_source(self, tool, tmp_path):
        with pytest.raises(IoFailureError, match="Source file not found"):
            CompilationExecutor({}).compile_object(tool, tmp_path / "nope.c", tmp_path / "nope.o")

    @patch('subprocess.run')
    def test_spawn_failure(self, mock_run, tool, source, tmp_path):
        mock_run.side_effect = FileNotFoundError("gone")

        with pytest.raises(IoFailureError, match="Failed to run"):
            CompilationExecutor({}).compile_object(tool, source, tmp_path / "foo.o")

    @patch('subprocess.run')
    def test_preprocess(self, mock_run, tool, source):
        mock_run.return_value = completed(stdout=b"int foo(void);\n", stderr=b"")

        output = CompilationExecutor({}).preprocess(tool, source)

        assert output == b"int foo(void);\n"
        assert mock_run.call_args[0][0][-2:] == ["-E", str(source)]
        assert mock_run.call_args[1]["text"] is False

    @patch('subprocess.run')
    def test_preprocess_failure(self, mock_run, tool, source):
        mock_run.return_value = completed(returncode=1, stdout=b"", stderr=b"fatal error")

        with pytest.raises(ToolInvocationFailedError, match="fatal error"):
            CompilationExecutor({}).preprocess(tool, source)
