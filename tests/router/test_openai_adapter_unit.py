import json
from unittest.mock import patch, Mock

import pytest

from lumi_router.adapters.registry import build_adapters
from lumi_router.core.errors import EmptyResponseError, ProviderHTTPError
from lumi_router.models import ConversationMessage


def _resp(status_code, body):
    mock_resp = Mock()
    mock_resp.status_code = status_code
    mock_resp.ok = 200 <= status_code < 300
    mock_resp.json.return_value = body
    mock_resp.text = json.dumps(body)
    return mock_resp


@pytest.fixture
def groq(cfg, monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", "fake-groq-key")
    return build_adapters(cfg)["groq"]


def _request(adapter):
    return adapter.transform_history(
        [
            ConversationMessage(role="user", content="hello"),
            ConversationMessage(role="assistant", content="hey"),
            ConversationMessage(role="user", content="2+2?"),
        ]
    )


def test_openai_adapter_posts_chat_completions(groq, cfg):
    ok = _resp(200, {"choices": [{"message": {"role": "assistant", "content": "4"}}]})

    with patch("lumi_router.adapters.openai._post", return_value=ok) as post:
        content = groq.invoke(_request(groq))

    assert content == "4"
    url, payload, api_key, timeout = post.call_args.args
    assert url == "https://api.groq.com/openai/v1/chat/completions"
    assert api_key == "fake-groq-key"
    assert timeout == 30
    assert payload["model"] == cfg.providers["groq"].model
    assert payload["messages"] == [
        {"role": "system", "content": cfg.system_prompt},
        {"role": "user", "content": "hello"},
        {"role": "assistant", "content": "hey"},
        {"role": "user", "content": "2+2?"},
    ]


def test_openai_adapter_parses_list_of_parts(groq):
    ok = _resp(
        200,
        {"choices": [{"message": {"role": "assistant", "content": [{"text": "Hello "}, {"text": "there"}]}}]},
    )
    with patch("lumi_router.adapters.openai._post", return_value=ok):
        assert groq.invoke(_request(groq)) == "Hello there"


def test_openai_adapter_empty_choices_is_empty_response(groq):
    with patch("lumi_router.adapters.openai._post", return_value=_resp(200, {"choices": []})):
        with pytest.raises(EmptyResponseError):
            groq.invoke(_request(groq))


def test_openai_adapter_http_error_keeps_status(groq):
    err = _resp(401, {"error": {"message": "Invalid API Key"}})
    with patch("lumi_router.adapters.openai._post", return_value=err):
        with pytest.raises(ProviderHTTPError) as ei:
            groq.invoke(_request(groq))
    assert ei.value.status_code == 401
    assert "Invalid API Key" in str(ei.value)
