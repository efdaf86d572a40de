"""Discovery and execution of the repository's verification command."""

import json
import logging
import re
import shlex
import time
from pathlib import Path

import aiofiles

from pr_pilot.process import ProcessRunner
from pr_pilot.verification.models import VerifyResult

logger = logging.getLogger(__name__)

MAX_ERRORS_PER_KIND = 10

_FAILED_LINE = re.compile(r"FAILED?\s+.*$", re.MULTILINE)
_ERROR_LINE = re.compile(r"error\s+")
_TS_ERROR = re.compile(r"TS\d+:.*$", re.MULTILINE)
_LINE_MARKER = re.compile(r"^\s*>?\s*\d+\s*\|")
_OBJECT_DUMP = re.compile(r"^error\s*\{")


def _is_noise(line: str) -> bool:
    """Lines that mention errors but are log output, stack frames or code excerpts."""
    stripped = line.strip()
    return (
        "console.log" in line
        or "console.warn" in line
        or "console.error" in line
        or stripped.startswith("at ")
        or bool(_LINE_MARKER.match(line))
        or bool(_OBJECT_DUMP.match(stripped))
    )


def parse_errors(stdout: str, stderr: str, exit_code: int) -> list[str]:
    """Extract error lines from verification output.

    Args:
        stdout: Command stdout
        stderr: Command stderr
        exit_code: Command exit code

    Returns:
        Error lines (empty when the command succeeded)
    """
    if exit_code == 0:
        return []

    combined = f"{stdout}\n{stderr}"
    errors: list[str] = []

    errors.extend(line for line in _FAILED_LINE.findall(combined) if not _is_noise(line))

    lint_errors = [line for line in combined.splitlines() if _ERROR_LINE.search(line) and not _is_noise(line)]
    errors.extend(lint_errors[:MAX_ERRORS_PER_KIND])

    errors.extend(_TS_ERROR.findall(combined)[:MAX_ERRORS_PER_KIND])

    if not errors:
        errors.append(f"Verification failed with exit code {exit_code}")

    return errors


class VerifyRunner:
    """Runs verification checks (tests, lint) in a working directory."""

    def __init__(
        self,
        working_dir: str | Path | None = None,
        command: str | None = None,
        runner: ProcessRunner | None = None,
    ) -> None:
        """Initialize the verify runner.

        Args:
            working_dir: Repository root (default: current directory)
            command: Verification command override (skips discovery)
            runner: Process runner
        """
        self.working_dir = Path(working_dir or Path.cwd())
        self.command = command
        self.runner = runner or ProcessRunner()

    async def discover_command(self) -> str | None:
        """Find the verification command for the working directory.

        Looks for, in order: a configured command, ``verify.sh``, package.json
        scripts, ``tox.ini`` and Makefile targets.

        Returns:
            Shell command to run, or None when nothing applies
        """
        if self.command:
            return self.command

        verify_sh = self.working_dir / "verify.sh"
        if verify_sh.exists():
            return f"bash {shlex.quote(str(verify_sh))}"

        package_json = self.working_dir / "package.json"
        if package_json.exists():
            scripts = await self._read_package_scripts(package_json)
            if "verify" in scripts:
                return "npm run verify"
            if "precommit" in scripts:
                return "npm run precommit"
            if "pre-commit" in scripts:
                return "npm run pre-commit"
            if "test" in scripts and "lint" in scripts:
                return "npm test && npm run lint"
            if "test" in scripts:
                return "npm test"

        if (self.working_dir / "tox.ini").exists():
            return "tox"

        makefile = self.working_dir / "Makefile"
        if makefile.exists():
            async with aiofiles.open(makefile, encoding="utf-8") as f:
                content = await f.read()
            if "verify:" in content:
                return "make verify"
            if "test:" in content:
                return "make test"

        return None

    async def _read_package_scripts(self, path: Path) -> dict[str, str]:
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring unparseable {path}")
            return {}
        scripts = data.get("scripts") if isinstance(data, dict) else None
        return scripts if isinstance(scripts, dict) else {}

    async def run_checks(self, timeout: float = 120) -> VerifyResult:
        """Run verification checks.

        A missing verification command counts as success. Timeouts and
        launch failures are reported as a failed result.

        Args:
            timeout: Timeout in seconds

        Returns:
            VerifyResult with extracted errors
        """
        start = time.monotonic()
        command = await self.discover_command()

        if command is None:
            return VerifyResult(
                success=True,
                output="No verification script found",
                duration=int((time.monotonic() - start) * 1000),
            )

        logger.info(f"Running verification: {command}")

        try:
            result = await self.runner.run(command, timeout=timeout, cwd=self.working_dir, shell=True)
        except (TimeoutError, OSError) as e:
            message = f"Verification did not complete: {str(e) or 'timed out'}"
            return VerifyResult(
                success=False,
                output=message,
                errors=[message],
                duration=int((time.monotonic() - start) * 1000),
                command=command,
            )

        return VerifyResult(
            success=result.success,
            output=result.stdout + result.stderr,
            errors=parse_errors(result.stdout, result.stderr, result.exit_code),
            duration=int((time.monotonic() - start) * 1000),
            command=command,
        )
