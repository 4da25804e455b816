import httpx
import openai
import pytest

from spendguard.core.exceptions import FatalProviderError, ProviderTimeoutError, TransientProviderError
from spendguard.pipeline.providers import BaseLLMProvider, make_provider

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def status_error(cls, status):
    response = httpx.Response(status, request=REQUEST)
    return cls("error", response=response, body=None)


@pytest.fixture
def provider():
    return BaseLLMProvider(model="test", timeout=20)


@pytest.mark.parametrize("error, expected", [
    (openai.APITimeoutError(request=REQUEST), ProviderTimeoutError),
    (openai.APIConnectionError(request=REQUEST), TransientProviderError),
    (status_error(openai.RateLimitError, 429), TransientProviderError),
    (status_error(openai.InternalServerError, 503), TransientProviderError),
    (status_error(openai.APIStatusError, 529), TransientProviderError),
    (status_error(openai.AuthenticationError, 401), FatalProviderError),
    (status_error(openai.BadRequestError, 400), FatalProviderError),
])
def test_translate_error(provider, error, expected):
    translated = provider._translate_error(openai, error)

    assert type(translated) is expected


def test_timeout_message_names_the_budget(provider):
    translated = provider._translate_error(openai, openai.APITimeoutError(request=REQUEST))

    assert "20" in str(translated)
    assert isinstance(translated, TransientProviderError)


@pytest.mark.parametrize("raw", [
    '{"isAnomaly": true}',
    '```json\n{"isAnomaly": true}\n```',
    'Here you go: {"isAnomaly": true} hope that helps',
])
def test_ensure_json_strips_wrapping(provider, raw):
    assert provider._ensure_json(raw) == '{"isAnomaly": true}'


def test_unknown_provider_name():
    with pytest.raises(ValueError):
        make_provider("llama")
