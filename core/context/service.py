import time
from typing import Callable, Dict, List, Optional, Sequence

from config.models import ContextConfig
from core.builder.workspace_builder import WorkspaceContextBuilder
from core.contracts.builder import ContextBuilder
from core.contracts.models import (
    AIContext,
    ContextSession,
    ContextStats,
    FileChange,
    FileContext,
)
from utils.cache import FileCache
from utils.errors import ContextBuildError
from utils.logger import logger

BuilderFactory = Callable[[], ContextBuilder]

FORMAT_CHANGES_SHOWN = 5


def _utf8_len(text: Optional[str]) -> int:
    return len(text.encode("utf-8")) if text else 0


def estimate_context_size(context: AIContext) -> int:
    """Returns the UTF-8 byte size of a context's textual payload."""
    size = 0
    if context.files:
        size += sum(_utf8_len(f.content) for f in context.files)
    size += _utf8_len(context.git_diff)
    size += _utf8_len(context.git_log)
    if context.recent_changes:
        size += sum(_utf8_len(c.diff) for c in context.recent_changes)
    return size


class ContextService:
    """
    Builds workspace context for conversations and keeps the latest one per
    conversation, together with a shared cache of file snippets.
    """

    def __init__(
        self,
        config: Optional[ContextConfig] = None,
        builder_factory: Optional[BuilderFactory] = None,
    ):
        """
        Args:
            config: Bounds and section switches. Defaults to `ContextConfig()`.
            builder_factory: Returns a fresh ContextBuilder per build. Defaults to
                a `WorkspaceContextBuilder` honouring the configured limits.
        """
        self.config = config or ContextConfig()
        self._builder_factory = builder_factory or self._default_builder
        self._sessions: Dict[str, ContextSession] = {}
        self._file_cache = FileCache(capacity=self.config.file_cache_size)

    def _default_builder(self) -> ContextBuilder:
        return WorkspaceContextBuilder(
            max_file_size=self.config.max_file_size,
            git_log_count=self.config.git_log_count,
        )

    async def build_context(
        self,
        conversation_id: str,
        workspace_path: str,
        file_changes: Optional[Sequence[FileChange]] = None,
        selected_files: Optional[Sequence[str]] = None,
    ) -> AIContext:
        """
        Rebuilds the context for a conversation and stores it.

        Inputs beyond the configured maxima are sliced off and file contents
        are truncated to `max_file_size`; neither raises.

        Raises:
            ContextBuildError: If the builder fails. No session is stored then.
        """
        cfg = self.config
        builder = self._builder_factory()

        if cfg.include_files and selected_files:
            builder.add_files(list(selected_files)[:cfg.max_files])

        if cfg.include_git_context:
            builder.add_git_context(workspace_path)

        if cfg.include_recent_changes and file_changes:
            builder.add_recent_changes(list(file_changes)[:cfg.max_changes])

        if cfg.include_workspace:
            builder.add_workspace(workspace_path)

        try:
            context = await builder.build()
        except ContextBuildError as e:
            logger.error(f"Failed to build context for '{conversation_id}': {e}")
            raise
        except Exception as e:
            logger.opt(exception=True).error(f"Context builder crashed for '{conversation_id}': {e}")
            raise ContextBuildError(f"Failed to build context for '{conversation_id}': {e}") from e

        context = self._bound_context(context)
        session = ContextSession(
            conversation_id=conversation_id,
            context=context,
            created_at=time.time(),
            files_cached=len(context.files or []),
            context_size=estimate_context_size(context),
        )
        self._sessions[conversation_id] = session
        logger.info(
            f"Built context for '{conversation_id}': {session.files_cached} files, "
            f"{session.context_size} bytes"
        )
        return context

    def _bound_context(self, context: AIContext) -> AIContext:
        """Applies the configured maxima to whatever the builder returned."""
        cfg = self.config
        update = {}
        if context.files is not None:
            update["files"] = [
                f if len(f.content) <= cfg.max_file_size
                else f.model_copy(update={"content": f.content[:cfg.max_file_size]})
                for f in context.files[:cfg.max_files]
            ]
        if context.recent_changes is not None:
            update["recent_changes"] = context.recent_changes[:cfg.max_changes]
        return context.model_copy(update=update) if update else context

    def get_context(self, conversation_id: str) -> Optional[AIContext]:
        session = self._sessions.get(conversation_id)
        return session.context if session else None

    async def update_context(
        self,
        conversation_id: str,
        workspace_path: str,
        file_changes: Optional[Sequence[FileChange]] = None,
        selected_files: Optional[Sequence[str]] = None,
    ) -> AIContext:
        """Rebuilds and replaces the context of an existing conversation."""
        return await self.build_context(conversation_id, workspace_path, file_changes, selected_files)

    def cache_file(self, path: str, content: str, language: str) -> None:
        self._file_cache.set(path, content, language)

    def get_cached_file(self, path: str) -> Optional[FileContext]:
        return self._file_cache.get(path)

    def clear_context(self, conversation_id: str) -> None:
        self._sessions.pop(conversation_id, None)

    def clear_all_context(self) -> None:
        self._sessions.clear()

    def get_session(self, conversation_id: str) -> Optional[ContextSession]:
        return self._sessions.get(conversation_id)

    def get_active_sessions(self) -> List[ContextSession]:
        return list(self._sessions.values())

    def get_stats(self) -> ContextStats:
        return ContextStats(
            active_sessions=len(self._sessions),
            cached_files=len(self._file_cache),
            total_context_size=sum(s.context_size for s in self._sessions.values()),
        )

    def format_context(self, context: AIContext) -> str:
        """Human-readable summary of a context, for logs and the CLI."""
        parts: List[str] = []

        if context.files:
            parts.append(f"Files: {len(context.files)}")
            parts.extend(f"  - {f.path} ({f.language})" for f in context.files)

        if context.git_branch:
            parts.append(f"Git Branch: {context.git_branch}")

        if context.recent_changes:
            changes = context.recent_changes
            parts.append(f"Recent Changes: {len(changes)}")
            parts.extend(f"  - {c.path} ({c.type})" for c in changes[:FORMAT_CHANGES_SHOWN])
            if len(changes) > FORMAT_CHANGES_SHOWN:
                parts.append(f"  ... and {len(changes) - FORMAT_CHANGES_SHOWN} more")

        return "\n".join(parts)

    def dispose(self) -> None:
        """Drops every session and the file cache."""
        self._sessions.clear()
        self._file_cache.clear()
