"""
Source file compilation orchestration for ccbuild.

This module compiles many source files with one configured Tool, serially
or through a bounded worker pool, and stops at the first failure.
"""

import hashlib
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from tqdm import tqdm

from ..errors import IoFailureError
from ..toolchain.tool import Tool
from .compilation_executor import CompilationExecutor


@dataclass
class CompileJob:
    """One source file and the object it compiles to."""

    source: Path
    object_path: Path


def object_path_for(out_dir: Path, source: Path) -> Path:
    """
    Map a source file to its object file under ``out_dir``.

    Relative sources keep their directory layout: ``src/foo.c`` becomes
    ``<out_dir>/src/foo.o``. Sources that are absolute or climb out with
    ``..`` cannot be mirrored, so they are flattened into ``out_dir`` with a
    hash of their directory prepended: ``../foo.c`` becomes
    ``<out_dir>/<hash>-foo.o`` and never collides with ``foo.c``.
    """
    if not source.anchor and ".." not in source.parts:
        return out_dir / source.with_suffix(".o")
    digest = hashlib.sha256(str(source.parent).encode("utf-8")).hexdigest()[:16]
    return out_dir / f"{digest}-{source.stem}.o"


def check_unique_objects(jobs: List[CompileJob]) -> None:
    """
    Ensure no two jobs write the same object file.

    Raises:
        IoFailureError: If two sources map to one object path
    """
    seen: Dict[Path, Path] = {}
    for job in jobs:
        if job.object_path in seen:
            raise IoFailureError(
                f"Sources {seen[job.object_path]} and {job.source} both compile to {job.object_path}"
            )
        seen[job.object_path] = job.source


class CompilationOrchestrator:
    """
    Orchestrates compilation of source files.

    Example usage:
        orchestrator = CompilationOrchestrator(executor, jobs=4)
        jobs = [CompileJob(src, object_path_for(out_dir, src)) for src in sources]
        objects = orchestrator.compile_objects(tool, jobs)
    """

    def __init__(self, executor: CompilationExecutor, jobs: int = 1, show_progress: bool = False):
        """
        Initialize compilation orchestrator.

        Args:
            executor: Executor running single compiles
            jobs: Maximum concurrent compiler processes
            show_progress: Show a progress bar
        """
        self.executor = executor
        self.jobs = max(1, jobs)
        self.show_progress = show_progress

    def compile_objects(self, tool: Tool, jobs: List[CompileJob]) -> List[Path]:
        """
        Compile every job, returning object paths in job order.

        The first failure stops scheduling: queued compiles are cancelled,
        compiles already running are allowed to finish, and the failure is
        re-raised.

        Raises:
            ToolInvocationFailedError: If a compiler exits with non-zero status
            IoFailureError: If a compiler cannot be spawned or two jobs share an object path
        """
        if not jobs:
            return []
        check_unique_objects(jobs)

        with tqdm(total=len(jobs), desc="Compiling", unit="file", disable=not self.show_progress) as bar:
            if self.jobs == 1 or len(jobs) == 1:
                objects = []
                for job in jobs:
                    objects.append(self.executor.compile_object(tool, job.source, job.object_path))
                    bar.update(1)
                return objects
            return self._compile_parallel(tool, jobs, bar)

    def _compile_parallel(self, tool: Tool, jobs: List[CompileJob], bar: tqdm) -> List[Path]:
        workers = min(self.jobs, len(jobs))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(self.executor.compile_object, tool, job.source, job.object_path)
                for job in jobs
            ]
            pending = set(futures)
            failure: Optional[BaseException] = None

            while pending and failure is None:
                done, pending = wait(pending, return_when=FIRST_EXCEPTION)
                for future in done:
                    bar.update(1)
                    if future.exception() is not None and failure is None:
                        failure = future.exception()

            if failure is not None:
                for future in pending:
                    future.cancel()
                # Leaving the with block waits for running compiles.
                raise failure

        return [future.result() for future in futures]

    def expand(self, tool: Tool, sources: List[Path]) -> bytes:
        """Preprocess every source in order and concatenate the output."""
        output = b""
        for source in sources:
            output += self.executor.preprocess(tool, source)
        return output
