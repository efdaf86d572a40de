"""Language detection and fix command resolution."""

import logging
import shlex
import shutil
from collections.abc import Mapping
from pathlib import Path

from pr_pilot.autofix.models import FixTask, Language

logger = logging.getLogger(__name__)

FILES_PLACEHOLDER = "{files}"

# First available tool wins. Commands with {files} get the affected files (or ".").
FIX_COMMANDS: dict[tuple[FixTask, Language], tuple[tuple[str, str], ...]] = {
    (FixTask.LINT, Language.TYPESCRIPT): (
        ("eslint", "npx eslint --fix {files}"),
        ("biome", "npx biome lint --write {files}"),
    ),
    (FixTask.LINT, Language.JAVASCRIPT): (
        ("eslint", "npx eslint --fix {files}"),
        ("biome", "npx biome lint --write {files}"),
    ),
    (FixTask.LINT, Language.PYTHON): (
        ("ruff", "ruff check --fix {files}"),
        ("autopep8", "autopep8 --in-place {files}"),
    ),
    (FixTask.LINT, Language.GO): (("golangci-lint", "golangci-lint run --fix"),),
    (FixTask.LINT, Language.RUST): (("cargo", "cargo clippy --fix --allow-dirty --allow-staged"),),
    (FixTask.FORMAT, Language.TYPESCRIPT): (
        ("prettier", "npx prettier --write {files}"),
        ("biome", "npx biome format --write {files}"),
    ),
    (FixTask.FORMAT, Language.JAVASCRIPT): (
        ("prettier", "npx prettier --write {files}"),
        ("biome", "npx biome format --write {files}"),
    ),
    (FixTask.FORMAT, Language.PYTHON): (
        ("black", "black {files}"),
        ("ruff", "ruff format {files}"),
    ),
    (FixTask.FORMAT, Language.GO): (("gofmt", "gofmt -w ."),),
    (FixTask.FORMAT, Language.RUST): (("cargo", "cargo fmt"),),
    (FixTask.DEPENDENCY_AUDIT, Language.TYPESCRIPT): (("npm", "npm audit fix"),),
    (FixTask.DEPENDENCY_AUDIT, Language.JAVASCRIPT): (("npm", "npm audit fix"),),
    (FixTask.DEPENDENCY_AUDIT, Language.PYTHON): (("pip-audit", "pip-audit --fix"),),
}

NODE_RUNNERS = {
    "pnpm": "pnpm exec ",
    "yarn": "yarn ",
    "bun": "bunx ",
}

NODE_AUDIT = {
    "pnpm": "pnpm audit --fix",
    "yarn": "yarn npm audit",
    "bun": "bun audit",
}

PYTHON_RUNNERS = {
    "poetry": "poetry run ",
    "pipenv": "pipenv run ",
    "uv": "uv run ",
}

_NODE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx", "package.json", "package-lock.json")
_TS_SUFFIXES = (".ts", ".tsx")


def detect_language(files: list[str]) -> Language:
    """Infer the project language from affected file names.

    Args:
        files: Affected file paths

    Returns:
        Detected language, UNKNOWN when nothing matches
    """
    if any(f.endswith(_NODE_SUFFIXES) for f in files):
        return Language.TYPESCRIPT if any(f.endswith(_TS_SUFFIXES) for f in files) else Language.JAVASCRIPT
    if any(f.endswith(".py") for f in files):
        return Language.PYTHON
    if any(f.endswith(".go") for f in files):
        return Language.GO
    if any(f.endswith(".rs") for f in files):
        return Language.RUST
    return Language.UNKNOWN


def adapt_command(command: str, language: Language, package_manager: str | None) -> str:
    """Rewrite a command for the project's package manager.

    Args:
        command: Command as listed for npm or pip
        language: Project language
        package_manager: Package manager name, if known

    Returns:
        Adapted command
    """
    if not package_manager:
        return command

    if language.is_node:
        if command == "npm audit fix":
            return NODE_AUDIT.get(package_manager, command)
        runner = NODE_RUNNERS.get(package_manager)
        if runner and command.startswith("npx "):
            return runner + command.removeprefix("npx ")
        return command

    if language == Language.PYTHON:
        runner = PYTHON_RUNNERS.get(package_manager)
        if runner and not command.startswith("make "):
            return runner + command

    return command


def _render(command: str, files: list[str]) -> str:
    targets = " ".join(shlex.quote(f) for f in files) if files else "."
    return command.replace(FILES_PLACEHOLDER, targets)


class CommandResolver:
    """Resolves the fix command for a task and language."""

    def __init__(self, working_dir: str | Path | None = None) -> None:
        """Initialize the resolver.

        Args:
            working_dir: Repository root, searched for node_modules/.bin tools
        """
        self.working_dir = Path(working_dir or Path.cwd())
        self._available: dict[str, bool] = {}

    def is_tool_available(self, tool: str) -> bool:
        """Check if a tool is on PATH or installed in node_modules.

        Args:
            tool: Executable name

        Returns:
            True if the tool can be run
        """
        if tool not in self._available:
            local_bin = self.working_dir / "node_modules" / ".bin" / tool
            self._available[tool] = shutil.which(tool) is not None or local_bin.exists()
        return self._available[tool]

    def resolve(
        self,
        task: FixTask,
        language: Language,
        package_manager: str | None = None,
        config: Mapping[str, str] | None = None,
        files: list[str] | None = None,
    ) -> str | None:
        """Resolve the command for a fix task.

        Config overrides win; otherwise the first available tool in the
        fallback chain is used.

        Args:
            task: Fix task
            language: Project language
            package_manager: Package manager name (npm, pnpm, yarn, bun, pip, poetry, pipenv, uv)
            config: Command overrides keyed by task name
            files: Files to pass to tools that accept them

        Returns:
            Command line, or None when no tool is available
        """
        files = files or []

        if config and config.get(task.value):
            return _render(config[task.value], files)

        for tool, command in FIX_COMMANDS.get((task, language), ()):
            if self.is_tool_available(tool):
                resolved = adapt_command(_render(command, files), language, package_manager)
                logger.debug(f"Resolved {task.value} for {language.value}: {resolved}")
                return resolved

        logger.debug(f"No {task.value} tool available for {language.value}")
        return None
