"""Git analysis functionality for listing fixup candidates."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import git

logger = logging.getLogger(__name__)

# Length of the abbreviated hash shown in the commit list
SHORT_HASH_LENGTH = 7

# Branches tried, in order, when no base branch is configured
DEFAULT_BASE_BRANCHES = ("main", "master")

# Subjects git itself generates for pending fixup/squash commits
SKIPPED_PREFIXES = ("fixup!", "squash!")

# Fields are joined with the ASCII unit separator so '|' in subjects survives
FIELD_SEPARATOR = "\x1f"
LOG_FORMAT = "%H%x1f%s%x1f%an%x1f%ar"


class FixupPickerError(Exception):
    """Base class for all fixuppicker errors."""


class SourceUnavailable(FixupPickerError):
    """The commit list could not be determined."""


class NoUpstreamFound(SourceUnavailable):
    """No merge base with the default branch exists."""


class BackendUnavailable(SourceUnavailable):
    """The repository could not be opened or queried."""


@dataclass(frozen=True)
class CommitRecord:
    """A single commit on the current branch."""
    id: str
    summary: str
    author: str
    relative_time: str

    def __post_init__(self):
        if len(self.id) < SHORT_HASH_LENGTH:
            raise ValueError(
                f"commit id {self.id!r} is shorter than {SHORT_HASH_LENGTH} characters"
            )

    @property
    def short_id(self) -> str:
        return self.id[:SHORT_HASH_LENGTH]

    def display_label(self) -> str:
        """Text shown in the list for this commit."""
        return self.summary


def open_repo(repo_path: str) -> git.Repo:
    """Open the repository at repo_path, translating GitPython failures."""
    try:
        return git.Repo(repo_path, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError) as e:
        raise BackendUnavailable(f"Not a git repository: {repo_path}") from e


def parse_log(output: str) -> List[CommitRecord]:
    """Parse `git log` output produced with LOG_FORMAT.

    Malformed lines are skipped, as are commits whose subject marks them as
    pending fixup or squash commits.
    """
    commits = []
    for line in output.strip().split('\n'):
        if not line:
            continue

        parts = line.split(FIELD_SEPARATOR, 3)
        if len(parts) != 4:
            logger.debug("Skipping malformed log line: %r", line)
            continue

        commit_hash, subject, author, date = parts
        if subject.startswith(SKIPPED_PREFIXES):
            continue

        commits.append(CommitRecord(
            id=commit_hash,
            summary=subject,
            author=author,
            relative_time=date,
        ))

    return commits


class GitAnalyzer:
    """Lists the commits unique to the current branch."""

    def __init__(self, repo_path: str = ".", base_branch: Optional[str] = None):
        """Initialize with repository path and optional base branch.

        Args:
            repo_path: Path to the git repository
            base_branch: Branch to compare HEAD against. When omitted, 'main'
                         and then 'master' are tried.
        """
        self.repo = open_repo(repo_path)
        self.repo_path = Path(repo_path)
        self.base_branch = base_branch
        self.resolved_base: Optional[str] = None

    def find_merge_base(self) -> str:
        """Return the merge base of HEAD and the base branch."""
        candidates = [self.base_branch] if self.base_branch else list(DEFAULT_BASE_BRANCHES)

        for branch in candidates:
            try:
                merge_base = self.repo.git.merge_base('HEAD', branch).strip()
            except git.exc.GitCommandError as e:
                logger.debug("No merge base with %s: %s", branch, e)
                continue
            if merge_base:
                logger.debug("Merge base with %s is %s", branch, merge_base)
                self.resolved_base = branch
                return merge_base

        raise NoUpstreamFound(f"could not find merge base with {'/'.join(candidates)}")

    def list_commits(self) -> List[CommitRecord]:
        """Get all non-fixup, non-merge commits since the merge base, newest first."""
        merge_base = self.find_merge_base()

        try:
            output = self.repo.git.log(
                f'--format={LOG_FORMAT}',
                '--no-merges',
                f'{merge_base}..HEAD',
            )
        except git.exc.GitCommandError as e:
            raise BackendUnavailable(f"failed to get commits: {e}") from e

        commits = parse_log(output)
        logger.debug("Found %d commits since %s", len(commits), merge_base[:SHORT_HASH_LENGTH])
        return commits
