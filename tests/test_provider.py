import pytest

from config.models import ProviderConfig
from core.contracts.models import ChatMessage
from core.llm.providers.echo_provider import DEFAULT_REPLY, EchoProvider
from core.llm.router import get_provider
from utils.errors import ProviderError


@pytest.fixture
def echo_config():
    return ProviderConfig(provider="echo", chunk_delay_ms=0)


def test_get_provider_echo(echo_config):
    """Tests that the router returns an EchoProvider instance."""
    provider = get_provider(echo_config)
    assert isinstance(provider, EchoProvider)


def test_get_provider_passes_parameters():
    config = ProviderConfig(provider="echo", parameters={"prefix": ">> "})
    provider = get_provider(config)
    assert provider._prefix == ">> "


def test_get_provider_unknown():
    """Tests that the router raises an error for an unknown provider."""
    config = ProviderConfig(provider="unknown")
    with pytest.raises(ProviderError, match="Unknown provider 'unknown'"):
        get_provider(config)


def test_get_provider_bad_parameters():
    config = ProviderConfig(provider="echo", parameters={"nonsense": 1})
    with pytest.raises(ProviderError, match="Failed to create provider 'echo'"):
        get_provider(config)


@pytest.mark.asyncio
async def test_echo_non_stream(echo_config):
    provider = EchoProvider(echo_config)
    messages = [
        ChatMessage(role="system", content="ctx"),
        ChatMessage(role="user", content="first"),
        ChatMessage(role="assistant", content="reply"),
        ChatMessage(role="user", content="second"),
    ]

    result = await provider.generate_response("c1", messages)

    assert result == "Echo: second"
    assert provider.received == [messages]


@pytest.mark.asyncio
async def test_echo_stream(echo_config):
    provider = EchoProvider(echo_config)
    chunks = []

    result = await provider.generate_response(
        "c1", [ChatMessage(role="user", content="hello there")], chunks.append
    )

    assert chunks == ["Echo:", " ", "hello", " ", "there"]
    assert "".join(chunks) == result


@pytest.mark.asyncio
async def test_echo_without_user_message(echo_config):
    provider = EchoProvider(echo_config)
    result = await provider.generate_response("c1", [ChatMessage(role="system", content="x")])
    assert result == f"Echo: {DEFAULT_REPLY}"
