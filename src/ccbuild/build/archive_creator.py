"""Archive Creator.

This module packs compiled object files into a static library with the
archiver tool (ar or lib.exe).

Design:
    - Wraps archiver command execution
    - Replaces any existing archive so stale members never survive
    - Shows archive size information
"""

import subprocess
from pathlib import Path
from typing import List, Mapping

from ..errors import IoFailureError, ToolInvocationFailedError, handle_keyboard_interrupt_properly
from ..toolchain.tool import Archiver


class ArchiveCreator:
    """Creates static library archives from object files.

    This class handles:
    - Running archiver commands
    - Validating archive creation
    - Showing size information
    """

    def __init__(self, env: Mapping[str, str], show_progress: bool = False):
        """Initialize archive creator.

        Args:
            env: Base environment for the archiver
            show_progress: Whether to show archive creation progress
        """
        self.env = env
        self.show_progress = show_progress

    def create_archive(
        self,
        archiver: Archiver,
        archive_path: Path,
        object_files: List[Path]
    ) -> Path:
        """Create static library archive from object files.

        Args:
            archiver: Resolved archiver
            archive_path: Output library path
            object_files: Object files to archive, in order

        Returns:
            Path to generated archive file

        Raises:
            IoFailureError: If the archive cannot be prepared or the archiver cannot be spawned
            ToolInvocationFailedError: If the archiver exits with non-zero status
        """
        try:
            archive_path.parent.mkdir(parents=True, exist_ok=True)
            if archive_path.exists():
                archive_path.unlink()
        except OSError as e:
            raise IoFailureError(f"Failed to prepare {archive_path}: {e}") from e

        cmd = archiver.to_command(archive_path, object_files)
        env = dict(self.env)
        env.update(archiver.env)

        if self.show_progress:
            print(f"Creating {archive_path.name} archive from {len(object_files)} object files...")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                stdin=subprocess.DEVNULL,
                env=env,
            )
        except KeyboardInterrupt as ke:
            handle_keyboard_interrupt_properly(ke)
            raise  # Never reached, but satisfies type checker
        except OSError as e:
            raise IoFailureError(f"Failed to run archiver {archiver.path}: {e}") from e

        if result.returncode != 0:
            raise ToolInvocationFailedError(
                f"Archive creation failed for {archive_path.name}\n"
                f"stderr: {result.stderr}\n"
                f"stdout: {result.stdout}",
                returncode=result.returncode,
                command=cmd,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        if not archive_path.exists():
            raise IoFailureError(f"Archive was not created: {archive_path}")

        if self.show_progress:
            size = archive_path.stat().st_size
            print(f"Created {archive_path.name}: {size:,} bytes")

        return archive_path
