import asyncio
from typing import List, Optional

from core.contracts.models import ChatMessage
from core.contracts.provider import ChunkCallback, Provider
from core.streaming.service import StreamingService
from utils.logger import logger


class StreamingProvider(Provider):
    """
    Routes a provider's streamed chunks through a debouncing ChunkProcessor
    bound to a fresh streaming session.

    The session lives exactly as long as the call: it is flushed and ended on
    success, on error and when the awaiting task is cancelled.
    """

    def __init__(self, wrapped_provider: Provider, streaming_service: StreamingService):
        self.wrapped_provider = wrapped_provider
        self.streaming_service = streaming_service
        self.last_session_id: Optional[str] = None

    async def generate_response(
        self,
        conversation_id: str,
        messages: List[ChatMessage],
        on_chunk: Optional[ChunkCallback] = None,
    ) -> str:
        if on_chunk is None:
            return await self.wrapped_provider.generate_response(conversation_id, messages)

        session_id = self.streaming_service.create_session(conversation_id)
        self.last_session_id = session_id
        processor = self.streaming_service.create_chunk_processor(on_chunk, session_id)
        try:
            return await self.wrapped_provider.generate_response(
                conversation_id, messages, processor.process
            )
        except asyncio.CancelledError:
            logger.info(f"Streaming call for session {session_id} was cancelled")
            raise
        finally:
            processor.flush()
            self.streaming_service.end_session(session_id)
