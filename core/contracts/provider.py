from typing import Callable, List, Optional, Protocol

from .models import ChatMessage

ChunkCallback = Callable[[str], None]


class Provider(Protocol):
    """A protocol for response providers."""

    async def generate_response(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        """
        Generates a response for a conversation.

        Args:
            conversation_id: The conversation the messages belong to.
            messages: The ordered message list. May start with an injected system message.
            on_chunk: Optional callback invoked with each partial chunk while streaming.

        Returns:
            The complete response text, also when streaming.
        """
        ...
