import asyncio
import re
from typing import List, Optional

from config.models import ProviderConfig
from core.contracts.models import ChatMessage
from core.contracts.provider import ChunkCallback, Provider
from core.registry import provider_registry

DEFAULT_REPLY = "Hello from the echo provider!"


@provider_registry.register("echo")
class EchoProvider(Provider):
    """A local provider for development and tests that echoes the last user message."""

    def __init__(self, config: ProviderConfig, prefix: str = "Echo: "):
        self.config = config
        self._prefix = prefix
        self.received: List[List[ChatMessage]] = []

    async def generate_response(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        """Returns the reply, streaming it token by token (whitespace kept) when asked."""
        self.received.append(list(messages))
        last_user = next((m for m in reversed(messages) if m.role == "user"), None)
        reply = f"{self._prefix}{last_user.content if last_user else DEFAULT_REPLY}"

        if on_chunk is not None:
            delay = self.config.chunk_delay_ms / 1000
            for token in filter(None, re.split(r"(\s+)", reply)):
                await asyncio.sleep(delay)  # Simulate network delay
                on_chunk(token)
        return reply
