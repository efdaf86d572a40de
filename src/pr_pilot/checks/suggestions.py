"""Suggested remediation commands for classified failures."""

from pr_pilot.checks.models import ErrorType

_PYTHON_SUFFIXES = (".py",)
_NODE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx")


class SuggestionEngine:
    """Produces a human-runnable suggestion for a failure."""

    def get_suggestion(self, summary: str, error_type: ErrorType, affected_files: list[str]) -> str:
        """Suggest a command or action for a failure.

        Args:
            summary: Check output summary
            error_type: Classified error type
            affected_files: Files extracted from the check output

        Returns:
            Suggested command or short instruction
        """
        has_python = any(f.endswith(_PYTHON_SUFFIXES) for f in affected_files)
        has_node = any(f.endswith(_NODE_SUFFIXES) for f in affected_files)
        files = " ".join(affected_files)

        if error_type == ErrorType.TEST_FAILURE:
            if has_python:
                return f"pytest {files} -v"
            if has_node:
                return f"npm test -- {files}"
            return "npm test -- --verbose"

        if error_type == ErrorType.LINTING_ERROR:
            if has_python:
                return f"ruff check --fix {files}"
            return "npm run lint -- --fix"

        if error_type == ErrorType.TYPE_ERROR:
            return f"mypy {files}" if has_python else "npm run typecheck"

        if error_type == ErrorType.FORMAT_ERROR:
            if has_python:
                return f"black {files}"
            return "npm run format"

        if error_type == ErrorType.BUILD_ERROR:
            return "npm run build"

        if error_type == ErrorType.SECURITY_ISSUE:
            lowered = summary.lower()
            if "secret" in lowered:
                return "Review and remove secrets from code"
            if "dependency" in lowered or "vulnerab" in lowered:
                return "npm audit fix"
            if "codeql" in lowered:
                return "Review CodeQL findings at check details URL"
            return "Review security scan findings"

        return "No specific suggestion available"
