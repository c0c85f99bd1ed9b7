import base64
from unittest.mock import MagicMock, patch

import pytest

from papershelf.config import Config
from papershelf.errors import AnalysisFailed, ConfigurationError
from papershelf.service import llm_service
from papershelf.service.llm_service import ALLOWED_TOPICS, analyze_pdf, parse_enrichment, suggest_topics


def _completion_response(content: str) -> MagicMock:
    resp = MagicMock()
    resp.choices[0].message.content = content
    return resp


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(Config.chat_litellm, "api_key", "test-key")
    monkeypatch.setattr(llm_service, "_litellm_ready", False)


def test_parse_plain_json() -> None:
    result = parse_enrichment(
        '{"summary": "S", "institution": "I", "topics": ["Agent", "Large Language Models", "Model Architecture"]}'
    )

    assert result.summary == "S"
    assert result.institution == "I"
    assert result.topics == ["Agent", "Large Language Models", "Model Architecture"]


def test_parse_strips_code_fences() -> None:
    text = '```json\n{"summary": "S", "institution": "Google", "topics": ["Agent"]}\n```'

    result = parse_enrichment(text)

    assert result.summary == "S"
    assert result.institution == "Google"
    assert result.topics == ["Agent"]


def test_parse_non_json_falls_back_to_raw_summary() -> None:
    text = "Sorry, I could not read this document properly."

    result = parse_enrichment(text)

    assert result.model_dump() == {"summary": text, "institution": "", "topics": []}


def test_parse_json_array_is_treated_as_malformed() -> None:
    result = parse_enrichment('["Agent", "Agent"]')

    assert result.summary == '["Agent", "Agent"]'
    assert result.topics == []


def test_parse_recovers_object_wrapped_in_prose() -> None:
    text = 'Here is the analysis:\n{"summary": "S", "institution": "I", "topics": []}\nThanks!'

    result = parse_enrichment(text)

    assert result.summary == "S"
    assert result.institution == "I"


def test_parse_drops_topics_outside_vocabulary_and_caps_at_three() -> None:
    text = (
        '{"summary": "S", "institution": null, "topics": '
        '["Agent", "Quantum Computing", "Agent", "Reinforcement Learning", '
        '"Model Architecture", "Recommendation System"]}'
    )

    result = parse_enrichment(text)

    assert result.institution == ""
    assert result.topics == ["Agent", "Reinforcement Learning", "Model Architecture"]
    assert all(t in ALLOWED_TOPICS for t in result.topics)


def test_analyze_pdf_sends_prompt_and_pdf(api_key) -> None:
    pdf = b"%PDF-1.7 test"
    reply = '{"summary": "S", "institution": "I", "topics": ["Agent"]}'

    with patch("papershelf.service.llm_service.completion", return_value=_completion_response(reply)) as mock_completion:
        result = analyze_pdf(pdf)

    assert result.summary == "S"

    kwargs = mock_completion.call_args.kwargs
    assert kwargs["model"] == Config.chat_litellm.model
    assert kwargs["api_key"] == "test-key"

    parts = kwargs["messages"][0]["content"]
    assert parts[0]["type"] == "text"
    for topic in ALLOWED_TOPICS:
        assert topic in parts[0]["text"]
    assert parts[1]["type"] == "file"
    expected = "data:application/pdf;base64," + base64.b64encode(pdf).decode("ascii")
    assert parts[1]["file"]["file_data"] == expected


def test_analyze_pdf_malformed_reply_does_not_raise(api_key) -> None:
    with patch("papershelf.service.llm_service.completion", return_value=_completion_response("no json here")):
        result = analyze_pdf(b"%PDF-1.7")

    assert result.summary == "no json here"
    assert result.institution == ""
    assert result.topics == []


def test_analyze_pdf_without_credential_raises_configuration_error(monkeypatch) -> None:
    monkeypatch.setattr(Config.chat_litellm, "api_key", None)

    with patch("papershelf.service.llm_service.completion") as mock_completion:
        with pytest.raises(ConfigurationError):
            analyze_pdf(b"%PDF-1.7")

    mock_completion.assert_not_called()


def test_analyze_pdf_transport_failure_raises(api_key) -> None:
    with patch("papershelf.service.llm_service.completion", side_effect=RuntimeError("401 invalid key")):
        with pytest.raises(AnalysisFailed):
            analyze_pdf(b"%PDF-1.7")


def test_analyze_pdf_rejects_empty_buffer(api_key) -> None:
    with pytest.raises(ValueError):
        analyze_pdf(b"")


def test_suggest_topics_parses_fenced_array(api_key) -> None:
    reply = '```json\n["NLP", "Transformers", "NLP", "LLM", "Extra"]\n```'

    with patch("papershelf.service.llm_service.completion", return_value=_completion_response(reply)) as mock_completion:
        topics = suggest_topics("LoRA freezes the pretrained weights. " * 400)

    assert topics == ["NLP", "Transformers", "LLM"]
    prompt = mock_completion.call_args.kwargs["messages"][0]["content"]
    assert "JSON array of strings" in prompt
    assert len(prompt) < 5000 + 300


def test_suggest_topics_returns_empty_on_failure(api_key) -> None:
    with patch("papershelf.service.llm_service.completion", return_value=_completion_response("NLP, LLM")):
        assert suggest_topics("some text") == []

    with patch("papershelf.service.llm_service.completion", return_value=_completion_response('{"topics": ["NLP"]}')):
        assert suggest_topics("some text") == []

    with patch("papershelf.service.llm_service.completion", side_effect=RuntimeError("quota exceeded")):
        assert suggest_topics("some text") == []


def test_suggest_topics_without_credential_returns_empty(monkeypatch) -> None:
    monkeypatch.setattr(Config.chat_litellm, "api_key", None)

    with patch("papershelf.service.llm_service.completion") as mock_completion:
        assert suggest_topics("some text") == []

    mock_completion.assert_not_called()
