"""pr-pilot: CI check polling and automated fixes for pull requests."""

__version__ = "0.1.0"
