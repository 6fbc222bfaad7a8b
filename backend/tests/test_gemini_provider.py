import pytest
import requests

from quizcraft.errors import GENERIC_SERVICE_MESSAGE, AIConfigurationError, AIServiceError
from quizcraft.providers.base import LLMCallInput, LLMError
from quizcraft.providers.gemini import GeminiProvider
from quizcraft.providers.manager import LLMManager


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def _provider(api_key="secret", timeout_ms=2500):
    return GeminiProvider(
        name="gemini",
        api_key=api_key,
        base_url="https://gemini.test/v1beta/",
        timeout_ms=timeout_ms,
    )


def _call(system_prompt="Be precise."):
    return LLMCallInput(
        task="quiz_generation",
        model="gemini-2.0-flash",
        system_prompt=system_prompt,
        user_prompt="Make a quiz",
        temperature=0.4,
    )


def _candidates(*texts):
    return {"candidates": [{"content": {"parts": [{"text": text} for text in texts]}}]}


def test_generate_text_posts_contents_and_system_instruction(monkeypatch):
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return FakeResponse(payload=_candidates('{"title": "A"}', "more"))

    monkeypatch.setattr(requests, "post", fake_post)

    output = _provider().generate_text(_call())

    assert output.text == '{"title": "A"}\nmore'
    assert captured["url"] == "https://gemini.test/v1beta/models/gemini-2.0-flash:generateContent"
    assert captured["headers"]["x-goog-api-key"] == "secret"
    assert captured["timeout"] == 2.5
    assert captured["json"]["contents"] == [{"role": "user", "parts": [{"text": "Make a quiz"}]}]
    assert captured["json"]["systemInstruction"] == {"parts": [{"text": "Be precise."}]}
    assert captured["json"]["generationConfig"] == {"temperature": 0.4}


def test_system_instruction_omitted_when_empty(monkeypatch):
    captured = {}

    def fake_post(url, headers, json, timeout):
        captured["json"] = json
        return FakeResponse(payload=_candidates("ok"))

    monkeypatch.setattr(requests, "post", fake_post)

    _provider().generate_text(_call(system_prompt=""))

    assert "systemInstruction" not in captured["json"]


@pytest.mark.parametrize(
    "response, category",
    [
        (FakeResponse(status_code=429), "rate_limit"),
        (FakeResponse(status_code=503), "server_error"),
        (FakeResponse(status_code=400, text="bad request"), "server_error"),
        (FakeResponse(payload=None), "server_error"),
        (FakeResponse(payload={"candidates": []}), "empty_response"),
        (FakeResponse(payload=_candidates("", "  ")), "empty_response"),
    ],
)
def test_response_classification(monkeypatch, response, category):
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: response)

    with pytest.raises(LLMError) as excinfo:
        _provider().generate_text(_call())

    assert excinfo.value.category == category


def test_timeout_is_classified(monkeypatch):
    def fake_post(*args, **kwargs):
        raise requests.Timeout("slow")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(LLMError) as excinfo:
        _provider().generate_text(_call())

    assert excinfo.value.category == "timeout"


def test_unconfigured_provider_never_calls_out(monkeypatch):
    def fake_post(*args, **kwargs):
        raise AssertionError("network must not be used")

    monkeypatch.setattr(requests, "post", fake_post)

    with pytest.raises(LLMError) as excinfo:
        _provider(api_key="").generate_text(_call())

    assert excinfo.value.category == "not_configured"


def test_manager_raises_configuration_error_before_calling(settings, provider):
    provider.configured = False
    manager = LLMManager(settings, provider=provider)

    with pytest.raises(AIConfigurationError) as excinfo:
        manager.complete_text("quiz_generation", "system", "user")

    assert excinfo.value.message == "Gemini API key is not configured"
    assert provider.calls == []


def test_manager_wraps_provider_errors_once(settings, provider):
    provider.queue(LLMError("upstream 503", category="server_error"), "never used")
    manager = LLMManager(settings, provider=provider)

    with pytest.raises(AIServiceError) as excinfo:
        manager.complete_text("quiz_generation", "system", "user")

    assert excinfo.value.category == "server_error"
    assert excinfo.value.message == GENERIC_SERVICE_MESSAGE
    assert "upstream 503" in str(excinfo.value)
    assert len(provider.calls) == 1


def test_manager_defaults_to_gemini(settings):
    manager = LLMManager(settings)

    assert isinstance(manager.provider, GeminiProvider)
    assert manager.is_configured() is True
