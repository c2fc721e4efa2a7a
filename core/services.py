from typing import Optional

from config.models import Config
from core.context.service import BuilderFactory, ContextService
from core.contracts.provider import Provider
from core.contracts.scheduler import Scheduler
from core.llm.context_provider import ContextAwareOptions, ContextAwareProvider
from core.streaming.provider import StreamingProvider
from core.streaming.service import StreamingService
from utils.logger import logger


class Services:
    """
    Owns the context and streaming services for the lifetime of the application.

    Create one at startup, hand its services to whoever needs them, and call
    `shutdown` (or use it as a context manager) when done.
    """

    def __init__(
        self,
        config: Config,
        scheduler: Optional[Scheduler] = None,
        builder_factory: Optional[BuilderFactory] = None,
    ):
        self.config = config
        self.context = ContextService(config.context, builder_factory)
        self.streaming = StreamingService(config.streaming, scheduler)
        logger.debug("Services started")

    def context_provider(self, provider: Provider, options: ContextAwareOptions) -> ContextAwareProvider:
        """Assembles context injection and session-bound streaming around `provider`."""
        return ContextAwareProvider(StreamingProvider(provider, self.streaming), self.context, options)

    def shutdown(self) -> None:
        self.streaming.clear_all()
        self.context.dispose()
        logger.debug("Services shut down")

    def __enter__(self) -> "Services":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
