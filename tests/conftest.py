"""Shared fixtures for fixuppicker tests."""

import hashlib
from pathlib import Path

import git
import pytest

from fixuppicker.git_analyzer import CommitRecord


def make_commit(index: int, summary: str = None) -> CommitRecord:
    """Build a CommitRecord with a distinct, realistic-looking hash."""
    return CommitRecord(
        id=hashlib.sha1(str(index).encode()).hexdigest(),
        summary=summary if summary is not None else f"Commit number {index}",
        author=f"Author {index}",
        relative_time=f"{index + 1} hours ago",
    )


def commit_file(repo: git.Repo, name: str, content: str, message: str) -> str:
    """Write a file, commit it and return the new commit hash."""
    path = Path(repo.working_tree_dir) / name
    path.write_text(content)
    repo.git.add(name)
    repo.git.commit('-m', message)
    return repo.head.commit.hexsha


@pytest.fixture
def commits():
    return [make_commit(i) for i in range(3)]


@pytest.fixture
def git_repo(tmp_path):
    """A repository with one commit on 'main' and a checked out 'feature' branch."""
    repo = git.Repo.init(tmp_path)
    with repo.config_writer() as config:
        config.set_value("user", "name", "Test Author")
        config.set_value("user", "email", "test@example.com")
        config.set_value("commit", "gpgsign", "false")

    commit_file(repo, "README", "base\n", "Initial commit")
    repo.git.branch('-M', 'main')
    repo.git.checkout('-b', 'feature')
    yield repo
    repo.close()
