import subprocess
from typing import List

from utils.errors import GitError


def _run_git(args: List[str], cwd: str) -> subprocess.CompletedProcess:
    """Runs a git command inside the given workspace."""
    try:
        return subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        if e.filename == cwd:
            raise GitError(f"Workspace path does not exist: {cwd}") from e
        raise GitError("Git is not installed or not in PATH.")
    except NotADirectoryError:
        raise GitError(f"Workspace path is not a directory: {cwd}")
    except OSError as e:
        raise GitError(f"An unexpected error occurred while running git: {e}") from e


def is_git_repository(cwd: str) -> bool:
    """Checks if the given directory is inside a Git work tree."""
    try:
        result = _run_git(["rev-parse", "--is-inside-work-tree"], cwd)
    except GitError:
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def get_current_branch_name(cwd: str) -> str:
    """
    Gets the current Git branch name of a workspace.

    Returns:
        The current branch name.

    Raises:
        GitError: If git is missing or the workspace is not a repository.
    """
    result = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
    if result.returncode != 0:
        raise GitError(f"Failed to get current branch name: {result.stderr.strip()}")
    return result.stdout.strip()


def get_recent_log(cwd: str, n: int = 10) -> str:
    """
    Retrieves the last `n` commits as one-line summaries.

    An empty repository yields an empty string rather than an error.
    """
    result = _run_git(["log", f"-n{n}", "--oneline"], cwd)
    if result.returncode != 0:
        if "does not have any commits" in result.stderr:
            return ""
        raise GitError(f"Failed to get git log: {result.stderr.strip()}")
    return result.stdout.strip()


def get_working_diff(cwd: str) -> str:
    """
    Retrieves uncommitted changes (staged and unstaged) against HEAD.

    Raises:
        GitError: If the git command fails.
    """
    result = _run_git(["diff", "HEAD"], cwd)
    if result.returncode not in [0, 1]:
        # Repositories without commits have no HEAD to diff against.
        if "unknown revision" in result.stderr or "bad revision" in result.stderr:
            return ""
        raise GitError(f"Failed to get git diff: {result.stderr.strip()}")
    return result.stdout
