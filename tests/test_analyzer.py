from unittest.mock import Mock, patch

import pytest

from pipeline.exceptions import AnalysisError
from services.analyzer import DocumentAnalyzer, parse_analysis


def test_parse_first_json_block():
    raw = 'Here you go:\n{"companyName": "대한상사", "contentSummary": "견적서", "confidence": 87}\nthanks'

    result = parse_analysis(raw)

    assert result.company_name == "대한상사"
    assert result.content_summary == "견적서"
    assert result.confidence == 87


def test_parse_applies_defaults_and_clamps():
    result = parse_analysis('{"companyName": "", "confidence": 150}')

    assert result.company_name == "알수없음"
    assert result.content_summary == "문서"
    assert result.confidence == 100


def test_parse_rejects_non_json():
    with pytest.raises(AnalysisError):
        parse_analysis("no json here")


def test_analyzer_uses_selected_provider():
    call = Mock(return_value='{"companyName": "Acme", "contentSummary": "Invoice", "confidence": 70}')

    with patch.dict("services.analyzer.PROVIDERS", {"openai": call}):
        result = DocumentAnalyzer(provider="openai", model="gpt-4o-mini").analyze("INVOICE " * 5000)

    assert result.company_name == "Acme"
    prompt, model = call.call_args.args
    assert model == "gpt-4o-mini"
    assert "INVOICE" in prompt
    assert len(prompt) < 9000


def test_analyzer_wraps_provider_errors():
    call = Mock(side_effect=ConnectionError("timeout"))

    with patch.dict("services.analyzer.PROVIDERS", {"ollama": call}):
        with pytest.raises(AnalysisError) as exc:
            DocumentAnalyzer(provider="ollama", model="llama3.2").analyze("text")

    assert exc.value.stage == "ANALYZE"


def test_unknown_provider():
    with pytest.raises(AnalysisError):
        DocumentAnalyzer(provider="nope", model="x").analyze("text")
