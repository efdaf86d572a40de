"""Keyword classification of failing CI checks."""

from enum import Enum

from pr_pilot.checks.models import CheckRun, ErrorType

# Order matters: the first group with a matching keyword wins.
KEYWORD_GROUPS: tuple[tuple[ErrorType, tuple[str, ...]], ...] = (
    (ErrorType.TEST_FAILURE, ("test", "pytest", "jest", "mocha", "vitest")),
    (ErrorType.LINTING_ERROR, ("eslint", "pylint", "flake8", "ruff", "lint")),
    (ErrorType.TYPE_ERROR, ("mypy", "typescript", "tsc", "typecheck", "type")),
    (ErrorType.SECURITY_ISSUE, ("security", "secret", "vuln", "codeql", "dependency")),
    (ErrorType.BUILD_ERROR, ("webpack", "babel", "rollup", "vite", "compile", "build")),
    (ErrorType.FORMAT_ERROR, ("prettier", "black", "autopep8", "format")),
)

CRITICAL_ERROR_TYPES = frozenset({
    ErrorType.TEST_FAILURE,
    ErrorType.BUILD_ERROR,
    ErrorType.SECURITY_ISSUE,
})


class SecurityIssueKind(str, Enum):
    """Sub-classification of security failures."""

    SECRET_LEAK = "secret_leak"
    DEPENDENCY_VULNERABILITY = "dependency_vulnerability"
    OTHER = "other"


_SECRET_KEYWORDS = ("secret", "credential", "api key", "private key", "token leak")
_DEPENDENCY_KEYWORDS = ("dependency", "dependencies", "vulnerab", "npm audit", "pip-audit", "advisory", "cve-")


def classify_text(name: str, title: str | None = None, summary: str | None = None) -> ErrorType:
    """Classify failure text into an error type.

    Args:
        name: Check name
        title: Output title, if any
        summary: Output summary, if any

    Returns:
        First matching error type in priority order, or UNKNOWN
    """
    haystack = " ".join(part for part in (name, title, summary) if part).lower()

    for error_type, keywords in KEYWORD_GROUPS:
        if any(keyword in haystack for keyword in keywords):
            return error_type

    return ErrorType.UNKNOWN


def classify_security_issue(text: str) -> SecurityIssueKind:
    """Tell leaked secrets apart from vulnerable dependencies.

    Secret wording wins when both appear.

    Args:
        text: Failure summary or output

    Returns:
        The security issue kind
    """
    lowered = text.lower()
    if any(keyword in lowered for keyword in _SECRET_KEYWORDS):
        return SecurityIssueKind.SECRET_LEAK
    if any(keyword in lowered for keyword in _DEPENDENCY_KEYWORDS):
        return SecurityIssueKind.DEPENDENCY_VULNERABILITY
    return SecurityIssueKind.OTHER


class FailureClassifier:
    """Maps raw check text to an ErrorType."""

    def classify(self, check: CheckRun) -> ErrorType:
        """Classify a check run from its name and output title/summary.

        Args:
            check: The check run to classify

        Returns:
            Classified error type
        """
        output = check.output
        if output is None:
            return classify_text(check.name)
        return classify_text(check.name, output.title, output.summary)

    @staticmethod
    def is_critical(error_type: ErrorType) -> bool:
        """Check whether an error type should trigger fail-fast.

        Args:
            error_type: Classified error type

        Returns:
            True for test, build and security failures
        """
        return error_type in CRITICAL_ERROR_TYPES
