from config.models import ProviderConfig
from core.contracts.provider import Provider
from core.registry import provider_registry
from utils.errors import ProviderError

# Imported for registration side effects.
from core.llm.providers import echo_provider  # noqa: F401


def get_provider(config: ProviderConfig) -> Provider:
    """
    Instantiates the provider named by `config.provider`.

    Extra `config.parameters` are passed to the constructor as keywords.

    Raises:
        ProviderError: If the name is unknown or construction fails.
    """
    if config.provider not in provider_registry:
        raise ProviderError(
            f"Unknown provider '{config.provider}'. "
            f"Available providers: {provider_registry.names()}"
        )
    try:
        return provider_registry.create(config.provider, config=config, **config.parameters)
    except Exception as e:
        raise ProviderError(f"Failed to create provider '{config.provider}': {e}") from e
