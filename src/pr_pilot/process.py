"""Execution of external commands."""

import asyncio
import logging
import shlex
from pathlib import Path
from typing import NamedTuple

logger = logging.getLogger(__name__)


class CommandResult(NamedTuple):
    """Result of an external command."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0


class ProcessRunner:
    """Runs fix and verification commands as subprocesses."""

    async def run(
        self,
        command: str | list[str],
        timeout: float,
        cwd: str | Path | None = None,
        shell: bool = False,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            command: Command line, or argument list
            timeout: Timeout in seconds
            cwd: Working directory (default: current directory)
            shell: Run the command through the shell

        Returns:
            A CommandResult with the outcome

        Raises:
            TimeoutError: If the command does not finish in time (the process is killed)
            OSError: If the executable cannot be started
        """
        workdir = Path(cwd) if cwd is not None else Path.cwd()
        logger.debug(f"Running command in {workdir}: {command}")

        if shell:
            line = command if isinstance(command, str) else shlex.join(command)
            process = await asyncio.create_subprocess_shell(
                line,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
            )
        else:
            args = shlex.split(command) if isinstance(command, str) else command
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
            )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout,
            )
        except TimeoutError:
            process.kill()
            await process.wait()
            logger.warning(f"Command timed out after {timeout}s: {command}")
            raise

        stdout = stdout_bytes.decode(errors="replace") if stdout_bytes else ""
        stderr = stderr_bytes.decode(errors="replace") if stderr_bytes else ""
        exit_code = process.returncode if process.returncode is not None else -1

        return CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)
