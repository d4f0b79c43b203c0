"""Tests for fixup commit creation."""

from pathlib import Path

import pytest

from fixuppicker.fixup_creator import Colors, FixupCreator, FixupFailed
from fixuppicker.git_analyzer import BackendUnavailable, FixupPickerError

from conftest import commit_file


def test_colorize():
    assert Colors.colorize("x", Colors.RED) == "\033[31mx\033[0m"
    assert Colors.colorize("x", Colors.RED, bold=True) == "\033[1m\033[31mx\033[0m"


def test_create_fixup(git_repo):
    target = commit_file(git_repo, "a.txt", "a\n", "Add a")
    (Path(git_repo.working_tree_dir) / "a.txt").write_text("a fixed\n")
    git_repo.git.add("a.txt")

    new_hash = FixupCreator(git_repo.working_tree_dir).create_fixup(target)

    head = git_repo.head.commit
    assert new_hash == head.hexsha
    assert head.summary == "fixup! Add a"
    assert head.parents[0].hexsha == target


def test_create_fixup_no_verify(git_repo):
    target = commit_file(git_repo, "a.txt", "a\n", "Add a")
    hook = Path(git_repo.git_dir) / "hooks" / "pre-commit"
    hook.parent.mkdir(exist_ok=True)
    hook.write_text("#!/bin/sh\nexit 1\n")
    hook.chmod(0o755)
    git_repo.git.config('core.hooksPath', str(hook.parent))
    (Path(git_repo.working_tree_dir) / "a.txt").write_text("a fixed\n")
    git_repo.git.add("a.txt")

    with pytest.raises(FixupFailed) as excinfo:
        FixupCreator(git_repo.working_tree_dir).create_fixup(target)
    assert "\n" not in str(excinfo.value)

    FixupCreator(git_repo.working_tree_dir, no_verify=True).create_fixup(target)
    assert git_repo.head.commit.summary == "fixup! Add a"


def test_create_fixup_without_staged_changes(git_repo):
    target = commit_file(git_repo, "a.txt", "a\n", "Add a")

    with pytest.raises(FixupFailed) as excinfo:
        FixupCreator(git_repo.working_tree_dir).create_fixup(target)

    assert "failed to create fixup commit" in str(excinfo.value)
    assert "nothing to commit" in str(excinfo.value)
    assert "\n" not in str(excinfo.value)
    assert isinstance(excinfo.value, FixupPickerError)
    assert git_repo.head.commit.hexsha == target


def test_create_fixup_error_is_one_line(git_repo):
    target = commit_file(git_repo, "a.txt", "a\n", "Add a")
    hook = Path(git_repo.git_dir) / "hooks" / "pre-commit"
    hook.parent.mkdir(exist_ok=True)
    hook.write_text("#!/bin/sh\necho 'lint failed' >&2\necho '  a.txt: trailing space' >&2\nexit 1\n")
    hook.chmod(0o755)
    git_repo.git.config('core.hooksPath', str(hook.parent))
    (Path(git_repo.working_tree_dir) / "a.txt").write_text("a fixed \n")
    git_repo.git.add("a.txt")

    with pytest.raises(FixupFailed) as excinfo:
        FixupCreator(git_repo.working_tree_dir).create_fixup(target)

    assert str(excinfo.value) == (
        "failed to create fixup commit: lint failed; a.txt: trailing space"
    )


def test_rebase_command(git_repo):
    parent = git_repo.head.commit.hexsha
    target = commit_file(git_repo, "a.txt", "a\n", "Add a")

    command = FixupCreator(git_repo.working_tree_dir).rebase_command(target)
    assert command == f"git rebase -i --autosquash {parent[:7]}"


def test_rebase_command_for_root_commit(git_repo):
    root = git_repo.git.rev_list('--max-parents=0', 'HEAD')
    command = FixupCreator(git_repo.working_tree_dir).rebase_command(root)
    assert command == "git rebase -i --autosquash --root"


def test_not_a_repository(tmp_path):
    with pytest.raises(BackendUnavailable):
        FixupCreator(str(tmp_path))
