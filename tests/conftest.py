"""Shared fixtures."""

from pathlib import Path

import git
import pytest

CONFIG_VARIABLES = ("GITHUB_TOKEN", "GH_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "GITHUB_API_URL", "CI")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run each test in an empty directory without configuration variables.

    Args:
        tmp_path: Pytest temporary directory fixture
        monkeypatch: Pytest monkeypatch fixture
    """
    monkeypatch.chdir(tmp_path)
    for name in CONFIG_VARIABLES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary Git repository with one commit.

    Args:
        tmp_path: Pytest temporary directory fixture

    Returns:
        Path to the temporary Git repository
    """
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    repo = git.Repo.init(repo_dir, initial_branch="main")

    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")

    (repo_dir / "app.py").write_text("def main():\n    return 1\n")
    (repo_dir / "README.md").write_text("# demo\n")
    repo.index.add(["app.py", "README.md"])
    repo.index.commit("Initial commit")

    return repo_dir
