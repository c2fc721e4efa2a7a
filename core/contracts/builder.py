from typing import Iterable, Protocol

from .models import AIContext, FileChange


class ContextBuilder(Protocol):
    """A protocol for chainable builders that assemble an AIContext."""

    def add_files(self, paths: Iterable[str]) -> "ContextBuilder":
        ...

    def add_git_context(self, workspace_path: str) -> "ContextBuilder":
        ...

    def add_recent_changes(self, changes: Iterable[FileChange]) -> "ContextBuilder":
        ...

    def add_workspace(self, workspace_path: str) -> "ContextBuilder":
        ...

    async def build(self) -> AIContext:
        """
        Collects everything that was configured.

        Raises:
            ContextBuildError: If a path is unreadable or git is unavailable.
        """
        ...
