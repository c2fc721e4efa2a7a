from typing import Any, List, Optional

from pydantic import BaseModel

from core.context.formatter import ContextFormatter
from core.context.service import ContextService
from core.contracts.models import AIContext, ChatMessage, FileChange
from core.contracts.provider import ChunkCallback, Provider
from utils.logger import logger


class ContextAwareOptions(BaseModel):
    conversation_id: str
    workspace_path: Optional[str] = None
    file_changes: Optional[List[FileChange]] = None
    selected_files: Optional[List[str]] = None
    auto_refresh: bool = True


def is_empty_context(context: AIContext) -> bool:
    return (
        not context.files
        and not context.git_branch
        and not context.recent_changes
        and not context.workspace
    )


def inject_context(messages: List[ChatMessage], context_block: str) -> List[ChatMessage]:
    """
    Merges a context block into a message list without mutating it.

    The first system message gets the block appended after a blank line;
    without one, a new system message is prepended.
    """
    result = list(messages)
    for index, message in enumerate(result):
        if message.role == "system":
            result[index] = message.model_copy(
                update={"content": f"{message.content}\n\n{context_block}"}
            )
            return result
    result.insert(0, ChatMessage(role="system", content=context_block))
    return result


class ContextAwareProvider(Provider):
    """
    Wraps a provider so every request carries the current workspace context.
    """

    def __init__(
        self,
        wrapped_provider: Provider,
        context_service: ContextService,
        options: ContextAwareOptions,
        formatter: Optional[ContextFormatter] = None,
    ):
        self.wrapped_provider = wrapped_provider
        self.context_service = context_service
        self.options = options
        self.formatter = formatter or ContextFormatter()

    async def generate_response(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        context = await self._acquire_context(conversation_id)
        messages_with_context = self._inject(messages, context)
        return await self.wrapped_provider.generate_response(
            conversation_id, messages_with_context, on_chunk
        )

    async def _acquire_context(self, conversation_id: str) -> Optional[AIContext]:
        opts = self.options
        if not opts.workspace_path:
            return None

        if not opts.auto_refresh:
            cached = self.context_service.get_context(conversation_id)
            if cached is not None:
                logger.debug(f"Using cached context for '{conversation_id}'")
                return cached

        return await self.context_service.build_context(
            conversation_id,
            opts.workspace_path,
            opts.file_changes,
            opts.selected_files,
        )

    def _inject(self, messages: List[ChatMessage], context: Optional[AIContext]) -> List[ChatMessage]:
        if context is None or is_empty_context(context):
            return messages
        # Rendered per call so truncation always reflects the latest build.
        return inject_context(messages, self.formatter.render(context))

    def update_options(self, **options: Any) -> None:
        """Shallow-merges options. Values are not validated."""
        self.options = self.options.model_copy(update=options)

    def clear_context(self) -> None:
        self.context_service.clear_context(self.options.conversation_id)

    def get_context(self) -> Optional[AIContext]:
        return self.context_service.get_context(self.options.conversation_id)


def wrap_with_context(
    provider: Provider,
    context_service: ContextService,
    options: ContextAwareOptions,
) -> ContextAwareProvider:
    """Wrap a provider with context awareness."""
    return ContextAwareProvider(provider, context_service, options)
