"""Fixup commit creation functionality."""

import logging

import git

from .git_analyzer import FixupPickerError, SHORT_HASH_LENGTH, open_repo

logger = logging.getLogger(__name__)


# Color constants for terminal output
class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'
    ITALIC = '\033[3m'

    # Basic colors
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    WHITE = '\033[37m'

    # Bright colors
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_MAGENTA = '\033[95m'
    BRIGHT_CYAN = '\033[96m'

    @staticmethod
    def colorize(text: str, color: str, bold: bool = False) -> str:
        """Apply color and formatting to text."""
        prefix = Colors.BOLD if bold else ""
        return f"{prefix}{color}{text}{Colors.RESET}"


class FixupFailed(FixupPickerError):
    """Creating the fixup commit failed."""


def _one_line(output: str, status: int) -> str:
    """Collapse git's output into one line for the picker's status view."""
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    if not lines:
        return f"git commit exited with status {status}"
    return "; ".join(lines)


class FixupCreator:
    """Creates fixup commits."""

    def __init__(self, repo_path: str = ".", no_verify: bool = False):
        """Initialize with repository path.

        Args:
            repo_path: Path to the git repository
            no_verify: If True, skip pre-commit and commit-msg hooks
        """
        self.repo = open_repo(repo_path)
        self.no_verify = no_verify

    def create_fixup(self, commit_id: str) -> str:
        """Create a fixup commit for commit_id from the staged changes.

        Returns:
            The hash of the new fixup commit.
        """
        args = [f'--fixup={commit_id}']
        if self.no_verify:
            args.append('--no-verify')

        logger.debug("Running git commit %s", ' '.join(args))
        status, stdout, stderr = self.repo.git.commit(
            *args, with_extended_output=True, with_exceptions=False)
        if status != 0:
            detail = _one_line(stderr or stdout, status)
            raise FixupFailed(f"failed to create fixup commit: {detail}")

        new_hash = self.repo.head.commit.hexsha
        logger.debug("Created fixup commit %s for %s", new_hash, commit_id)
        return new_hash

    def rebase_command(self, target_commit: str) -> str:
        """Return the rebase command that applies a fixup for target_commit."""
        try:
            parent_commit = self.repo.git.rev_parse(f"{target_commit}^")
        except git.exc.GitCommandError:
            # Root commit has no parent
            return "git rebase -i --autosquash --root"
        return f"git rebase -i --autosquash {parent_commit[:SHORT_HASH_LENGTH]}"
