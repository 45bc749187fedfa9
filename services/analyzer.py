# services/analyzer.py

import os
import re
import json
import logging
import importlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, cast

from config.runtime_settings import runtime_settings
from pipeline.exceptions import AnalysisError

logger = logging.getLogger("analyzer")

MAX_PROMPT_TEXT = 8000

DEFAULT_COMPANY = "알수없음"
DEFAULT_SUMMARY = "문서"

SYSTEM_PROMPT = "당신은 스캔 문서를 분류하는 문서 분석 전문가입니다. 반드시 JSON 으로만 답하세요."

PROMPT_TEMPLATE = """아래는 스캔 문서에서 OCR 로 추출한 텍스트입니다.
문서를 분석하여 다음 세 항목을 JSON 으로 반환하세요.

- companyName: 문서를 보낸(작성한) 회사명. 없으면 받는 회사명.
  (주), 주식회사 등 법인 표기는 빼고, 영문 회사명은 번역하지 않음
- contentSummary: 문서 종류를 5~15자 이내로 (예: 견적서, 계약서, 발주서, 세금계산서, 거래명세서)
  파일명에 사용되므로 날짜/문서번호는 넣지 않음
- confidence: 분석 결과 신뢰도 0~100 정수

확실하지 않아도 최선의 추측을 제공하세요.

응답 형식:
{{"companyName": "회사명", "contentSummary": "내용요약", "confidence": 85}}

---
OCR 텍스트:
{text}
---"""


@dataclass
class DocumentAnalysis:
    company_name: str
    content_summary: str
    confidence: int


# =================================================
# LLM Providers
# =================================================


def _call_openai(prompt: str, model: str) -> str:
    """OpenAI API 호출"""
    from openai import OpenAI

    client = OpenAI()
    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        temperature=0.1,
        max_tokens=300,
    )
    return response.choices[0].message.content or ""


def _call_ollama(prompt: str, model: str) -> str:
    """Ollama 로컬 LLM 호출"""
    import ollama

    response = ollama.chat(
        model=model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
    )
    return response["message"]["content"]


def _call_gemini(prompt: str, model: str) -> str:
    """Google Gemini API 호출 (GOOGLE_API_KEY / GEMINI_API_KEY)"""
    genai = cast(Any, importlib.import_module("google.generativeai"))

    api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    if api_key:
        genai.configure(api_key=api_key)
    else:
        genai.configure()

    gen_model = genai.GenerativeModel(model)
    response = gen_model.generate_content(f"{SYSTEM_PROMPT}\n\n{prompt}")
    return response.text


PROVIDERS: Dict[str, Callable[[str, str], str]] = {
    "gemini": _call_gemini,
    "openai": _call_openai,
    "ollama": _call_ollama,
}


def parse_analysis(raw: str) -> DocumentAnalysis:
    """LLM 응답에서 첫 JSON 블록 파싱"""
    match = re.search(r"\{[\s\S]*\}", raw or "")
    if not match:
        raise AnalysisError("JSON 응답을 파싱할 수 없습니다.")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise AnalysisError(f"JSON 응답을 파싱할 수 없습니다: {e}") from e

    try:
        confidence = int(float(parsed.get("confidence") or 0))
    except (TypeError, ValueError):
        confidence = 0

    return DocumentAnalysis(
        company_name=str(parsed.get("companyName") or DEFAULT_COMPANY).strip(),
        content_summary=str(parsed.get("contentSummary") or DEFAULT_SUMMARY).strip(),
        confidence=max(0, min(confidence, 100)),
    )


class DocumentAnalyzer:
    """
    OCR 텍스트 → 업체명 / 내용요약 / 신뢰도

    provider, model 을 지정하지 않으면 runtime_settings 의 현재 값을 호출 시점에 사용
    """

    def __init__(self, provider: Optional[str] = None, model: Optional[str] = None):
        self.provider = provider
        self.model = model

    def analyze(self, text: str) -> DocumentAnalysis:
        provider = self.provider or runtime_settings.llm.provider
        model = self.model or runtime_settings.llm.model

        call = PROVIDERS.get(provider)
        if call is None:
            raise AnalysisError(f"지원하지 않는 LLM provider: {provider}")

        prompt = PROMPT_TEMPLATE.format(text=text[:MAX_PROMPT_TEXT])

        try:
            raw = call(prompt, model)
        except Exception as e:
            logger.error(f"[ANALYZE] {provider}/{model} failed: {e}")
            raise AnalysisError(f"문서 분석 중 오류 발생: {e}") from e

        return parse_analysis(raw)
