import json
from unittest.mock import patch, Mock

import pytest

from lumi_router.adapters.registry import build_adapters
from lumi_router.core.errors import ConfigError, EmptyResponseError, ProviderHTTPError
from lumi_router.models import ConversationMessage


def _resp(status_code, body):
    mock_resp = Mock()
    mock_resp.status_code = status_code
    mock_resp.ok = 200 <= status_code < 300
    if isinstance(body, dict):
        mock_resp.json.return_value = body
        mock_resp.text = json.dumps(body)
    else:
        mock_resp.json.side_effect = ValueError("not json")
        mock_resp.text = body
    return mock_resp


@pytest.fixture
def gemini(cfg, monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", "fake-google-key")
    return build_adapters(cfg)["gemini"]


def _request(adapter):
    history = [
        ConversationMessage(role="assistant", content="Hi! I'm Lumi."),
        ConversationMessage(role="user", content="hello"),
        ConversationMessage(role="assistant", content="hey"),
        ConversationMessage(role="user", content="what's up"),
    ]
    return adapter.transform_history(history)


def test_gemini_adapter_builds_native_payload(gemini, cfg):
    ok = _resp(200, {"candidates": [{"content": {"parts": [{"text": "Not much!"}]}}]})

    with patch("lumi_router.adapters.gemini._post", return_value=ok) as post:
        content = gemini.invoke(_request(gemini))

    assert content == "Not much!"
    url, payload, api_key, timeout = post.call_args.args
    assert url == "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"
    assert api_key == "fake-google-key"
    assert timeout == cfg.routing.timeout_s
    assert payload["systemInstruction"] == {"parts": [{"text": cfg.system_prompt}]}
    assert payload["contents"] == [
        {"role": "user", "parts": [{"text": "hello"}]},
        {"role": "model", "parts": [{"text": "hey"}]},
        {"role": "user", "parts": [{"text": "what's up"}]},
    ]
    assert payload["generationConfig"]["maxOutputTokens"] == 2048


def test_gemini_adapter_joins_multiple_parts(gemini):
    ok = _resp(
        200,
        {"candidates": [{"content": {"parts": [{"text": "Photo"}, {"text": "synthesis"}]}}]},
    )
    with patch("lumi_router.adapters.gemini._post", return_value=ok):
        assert gemini.invoke(_request(gemini)) == "Photosynthesis"


def test_gemini_adapter_raises_on_http_error(gemini):
    with patch("lumi_router.adapters.gemini._post", return_value=_resp(429, {"error": {"status": "RESOURCE_EXHAUSTED"}})):
        with pytest.raises(ProviderHTTPError) as ei:
            gemini.invoke(_request(gemini))
    assert ei.value.status_code == 429
    assert ei.value.provider_id == "gemini"


def test_gemini_adapter_blocked_prompt_is_empty_response(gemini):
    blocked = _resp(200, {"promptFeedback": {"blockReason": "SAFETY"}})
    with patch("lumi_router.adapters.gemini._post", return_value=blocked):
        with pytest.raises(EmptyResponseError, match="SAFETY"):
            gemini.invoke(_request(gemini))


def test_gemini_adapter_non_json_body_is_upstream(gemini):
    with patch("lumi_router.adapters.gemini._post", return_value=_resp(200, "<html>oops</html>")):
        with pytest.raises(Exception) as ei:
            gemini.invoke(_request(gemini))
    assert "parse error" in str(ei.value)


def test_gemini_adapter_without_key_never_posts(cfg):
    adapter = build_adapters(cfg)["gemini"]
    with patch("lumi_router.adapters.gemini._post") as post:
        with pytest.raises(ConfigError):
            adapter.invoke(_request(adapter))
    post.assert_not_called()
