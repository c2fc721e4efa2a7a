import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.contracts.builder import ContextBuilder
from core.contracts.models import (
    AIContext,
    FileChange,
    FileContext,
    ProjectStructure,
    WorkspaceInfo,
)
from utils.errors import ContextBuildError
from utils.git import get_current_branch_name, get_recent_log, get_working_diff
from utils.logger import logger

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".sh": "bash",
    ".md": "markdown",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".toml": "toml",
    ".html": "html",
    ".css": "css",
    ".sql": "sql",
}

# Checked in order; the first marker found decides the project type.
PROJECT_MARKERS = [
    ("pyproject.toml", "python"),
    ("setup.py", "python"),
    ("package.json", "node"),
    ("Cargo.toml", "rust"),
    ("go.mod", "go"),
    ("pom.xml", "java"),
    ("build.gradle", "java"),
]


def detect_language(path: str) -> str:
    """Guesses a fenced-code language tag from a file extension."""
    return LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower(), "text")


def detect_project_type(root: Path) -> str:
    for marker, project_type in PROJECT_MARKERS:
        if (root / marker).exists():
            return project_type
    return "unknown"


class WorkspaceContextBuilder(ContextBuilder):
    """
    Assembles an AIContext from the local file system and git.

    Configuration calls only record what to collect; all I/O happens in `build`.
    """

    def __init__(self, max_file_size: int = 100 * 1024, git_log_count: int = 10):
        self.max_file_size = max_file_size
        self.git_log_count = git_log_count
        self._files: List[str] = []
        self._git_workspace: Optional[str] = None
        self._changes: List[FileChange] = []
        self._workspace: Optional[str] = None

    def add_files(self, paths: Iterable[str]) -> "WorkspaceContextBuilder":
        self._files.extend(paths)
        return self

    def add_git_context(self, workspace_path: str) -> "WorkspaceContextBuilder":
        self._git_workspace = workspace_path
        return self

    def add_recent_changes(self, changes: Iterable[FileChange]) -> "WorkspaceContextBuilder":
        self._changes.extend(changes)
        return self

    def add_workspace(self, workspace_path: str) -> "WorkspaceContextBuilder":
        self._workspace = workspace_path
        return self

    async def build(self) -> AIContext:
        """
        Runs the configured collection steps off the event loop.

        Raises:
            ContextBuildError: If a file cannot be read, the workspace is missing
                or git is unavailable.
        """
        return await asyncio.to_thread(self._build_sync)

    def _build_sync(self) -> AIContext:
        data: Dict[str, Any] = {}

        if self._files:
            data["files"] = [self._read_file(p) for p in self._files]

        if self._git_workspace is not None:
            data.update(self._collect_git(self._git_workspace))

        if self._changes:
            data["recent_changes"] = list(self._changes)

        if self._workspace is not None:
            data["workspace"] = self._collect_workspace(self._workspace)

        logger.debug(f"Built context with sections: {list(data.keys())}")
        return AIContext(**data)

    def _resolve(self, path: str) -> Path:
        candidate = Path(path).expanduser()
        base = self._workspace or self._git_workspace
        if not candidate.is_absolute() and base:
            candidate = Path(base).expanduser() / candidate
        return candidate

    def _read_file(self, path: str) -> FileContext:
        resolved = self._resolve(path)
        try:
            with open(resolved, "r", encoding="utf-8", errors="replace") as f:
                content = f.read(self.max_file_size)
        except OSError as e:
            raise ContextBuildError(f"Failed to read file {path}: {e}") from e
        return FileContext(path=path, content=content, language=detect_language(path))

    def _collect_git(self, workspace_path: str) -> Dict[str, Any]:
        cwd = str(Path(workspace_path).expanduser())
        # GitError is a ContextBuildError and propagates as is.
        branch = get_current_branch_name(cwd)
        git_log = get_recent_log(cwd, self.git_log_count)
        git_diff = get_working_diff(cwd)
        return {
            "git_branch": branch,
            "git_log": git_log or None,
            "git_diff": git_diff or None,
        }

    def _collect_workspace(self, workspace_path: str) -> WorkspaceInfo:
        root = Path(workspace_path).expanduser()
        if not root.is_dir():
            raise ContextBuildError(f"Workspace path is not a directory: {workspace_path}")
        root = root.resolve()
        return WorkspaceInfo(
            structure=ProjectStructure(type=detect_project_type(root), root_path=str(root))
        )
