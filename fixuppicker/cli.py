"""Command-line interface for fixuppicker."""

import logging
import os
import re
import sys
from pathlib import Path

import click
from tabulate import tabulate

from .fixup_creator import Colors, FixupCreator
from .git_analyzer import GitAnalyzer, SourceUnavailable
from .picker import Failed, SelectionState, Succeeded, Theme, render_view
from .terminal import TerminalController, TerminalError, run_event_loop

logger = logging.getLogger(__name__)


def get_version() -> str:
    """Get version from package metadata or pyproject.toml."""
    # Try importlib.metadata first (standard Python way)
    try:
        from importlib.metadata import version
        return version("fixuppicker")
    except Exception:
        pass

    # Fallback to reading pyproject.toml for development installs
    try:
        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject_path, "r") as f:
            content = f.read()
            match = re.search(r'version\s*=\s*"([^"]+)"', content)
            if match:
                return match.group(1)
    except OSError:
        pass

    return "unknown"


def setup_logging(debug: bool, log_file: str) -> None:
    """Send debug logging to log_file.

    The picker owns the terminal while it runs, so logging never goes to the
    console.
    """
    if not debug:
        return
    logging.basicConfig(
        filename=log_file,
        level=logging.DEBUG,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logger.debug("Debug logging enabled")


def print_commit_table(commits) -> None:
    """Print commits as a table, newest first."""
    headers = [
        Colors.colorize("Hash", Colors.BRIGHT_CYAN, bold=True),
        Colors.colorize("Subject", Colors.WHITE, bold=True),
        Colors.colorize("Author", Colors.WHITE, bold=True),
        Colors.colorize("Age", Colors.WHITE, bold=True),
    ]
    rows = [
        [
            Colors.colorize(commit.short_id, Colors.BRIGHT_CYAN, bold=True),
            commit.display_label(),
            commit.author,
            Colors.colorize(commit.relative_time, Colors.DIM),
        ]
        for commit in commits
    ]
    click.echo(tabulate(rows, headers=headers, tablefmt="simple", stralign="left"))


@click.command()
@click.version_option(version=get_version())
@click.option('--repo', type=click.Path(exists=True, file_okay=False, dir_okay=True), default='.', help='Path to git repository (default: current directory)')
@click.option('--base', type=str, help='Branch to compare against (default: main, then master)')
@click.option('--no-verify', is_flag=True, help='Bypass pre-commit and commit-msg hooks')
@click.option('--list', 'list_only', is_flag=True, help='Print the commits as a table instead of starting the picker')
@click.option('--no-color', is_flag=True, help='Disable colored output in the picker')
@click.option('--debug', is_flag=True, help='Write debug logging to the log file (also enabled by the DEBUG environment variable)')
@click.option('--log-file', type=click.Path(dir_okay=False), default='debug.log', help='Debug log file (default: debug.log)')
def main(repo, base, no_verify, list_only, no_color, debug, log_file):
    """Pick a commit on the current branch and create a fixup commit for it.

    Lists the commits made since the branch left its base branch, skipping
    merges and existing fixup!/squash! commits. Stage your changes first,
    then select the commit they belong to and press enter.
    """
    setup_logging(debug or bool(os.environ.get('DEBUG')), log_file)

    try:
        analyzer = GitAnalyzer(repo, base_branch=base)
        commits = analyzer.list_commits()
    except SourceUnavailable as e:
        click.echo(Colors.colorize(f"❌ Error fetching commits: {e}", Colors.BRIGHT_RED), err=True)
        sys.exit(1)

    if not commits:
        click.echo("No commits found on this branch")
        return

    if list_only:
        print_commit_table(commits)
        return

    creator = FixupCreator(repo, no_verify=no_verify)
    theme = Theme.plain() if no_color else Theme()
    state = SelectionState(commits, creator.create_fixup)

    try:
        terminal = TerminalController.from_streams(sys.stdin, sys.stdout)
        outcome = run_event_loop(state, theme, terminal)
    except (TerminalError, OSError) as e:
        click.echo(Colors.colorize(f"❌ Error running program: {e}", Colors.BRIGHT_RED), err=True)
        sys.exit(1)

    if isinstance(outcome, Failed):
        # A failed fixup ends the session but is not a program failure
        click.echo("\n".join(render_view(state, theme)), err=True)
        return

    if isinstance(outcome, Succeeded):
        click.echo("\n".join(render_view(state, theme)))
        click.echo()
        click.echo(Colors.colorize("🚀 To apply the fixup commit, run:", Colors.WHITE, bold=True))
        command = creator.rebase_command(outcome.commit.id)
        click.echo(f"    {Colors.colorize(command, Colors.BRIGHT_GREEN, bold=True)}")


if __name__ == '__main__':
    main()
