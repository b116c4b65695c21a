"""Thin wrapper around the ``docker compose`` CLI."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)


class ComposeError(RuntimeError):
    """Base class for compose invocation failures."""


class ComposeUnavailableError(ComposeError):
    """The ``docker`` executable is not installed."""


class ComposeCommandError(ComposeError):
    """A compose command exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"{' '.join(command)} exited with {returncode}\nstdout:\n{stdout}\nstderr:\n{stderr}"
        )


class ComposeRunner:
    """
    Run compose commands for one project and descriptor.

    Args:
        project: Compose project name (``-p``).
        compose_file: Descriptor path (``-f``).
        executable: Base command, ``docker compose`` by default.
    """

    def __init__(
        self,
        project: str,
        compose_file: Path,
        executable: tuple[str, ...] = ("docker", "compose"),
    ):
        self.project = project
        self.compose_file = Path(compose_file)
        self.executable = executable

    def command(self, *args: str) -> list[str]:
        return [*self.executable, "-p", self.project, "-f", str(self.compose_file), *args]

    def _run(self, *args: str, capture: bool = True, check: bool = True) -> subprocess.CompletedProcess:
        command = self.command(*args)
        logger.info("Running %s", " ".join(command))
        try:
            result = subprocess.run(
                command,
                check=False,
                text=True,
                capture_output=capture,
            )
        except FileNotFoundError as exc:
            raise ComposeUnavailableError(f"{self.executable[0]} is not installed") from exc

        if check and result.returncode != 0:
            raise ComposeCommandError(
                command,
                result.returncode,
                stdout=result.stdout or "",
                stderr=result.stderr or "",
            )
        return result

    def up(
        self, *services: str, detach: bool = True, build: bool = True, capture: bool = True
    ) -> None:
        args = ["up"]
        if detach:
            args.append("-d")
        if build:
            args.append("--build")
        self._run(*args, *services, capture=capture)

    def run_to_completion(self, service: str, build: bool = True) -> int:
        """
        Bring the whole stack up and block until *service* exits.

        One-shot jobs exit while the stack keeps running, so the stack is
        started detached and ``compose wait`` follows only *service*.
        Output goes straight to the terminal; restoring the database dump
        alone can take most of an hour.

        Returns:
            The exit code of *service*.
        """
        self.up(detach=True, build=build, capture=False)
        result = self._run("wait", service, capture=False, check=False)
        return result.returncode

    def down(self, volumes: bool = True) -> None:
        args = ["down", "--remove-orphans"]
        if volumes:
            args.append("-v")
        self._run(*args, check=False)

    def ps(self) -> str:
        return self._run("ps").stdout
