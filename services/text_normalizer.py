# services/text_normalizer.py

import re
import unicodedata

SEPARATOR = "_"
DOCUMENT_EXT = ".pdf"

# Windows 파일명 금지 문자
_ILLEGAL_CHARS = re.compile(r'[\\/:*?"<>|]')


def sanitize_filename_part(text: str) -> str:
    """
    파일명 조각 정리 (업체명, 내용요약)
    """
    if not text:
        return ""

    # 1️⃣ Unicode 정규화 (한글/호환문자 안정화)
    text = unicodedata.normalize("NFKC", text)

    # 2️⃣ 금지 문자 제거
    text = _ILLEGAL_CHARS.sub("", text)

    # 3️⃣ 제어문자 / Zero-width 문자 제거
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    text = re.sub(r"[\u200b\u200c\u200d\uFEFF]", "", text)

    # 4️⃣ 공백 → 구분자, 연속 구분자 압축
    text = re.sub(r"\s+", SEPARATOR, text)
    text = re.sub(rf"{SEPARATOR}{{2,}}", SEPARATOR, text)

    # 5️⃣ 앞뒤 구분자 제거
    return text.strip(SEPARATOR).strip()


def build_base_name(company_name: str, content_summary: str, max_length: int = 50) -> str:
    """
    '업체명_내용요약' (확장자 제외, 최대 길이 제한)
    """
    company = sanitize_filename_part(company_name) or "알수없음"
    summary = sanitize_filename_part(content_summary) or "문서"

    base = f"{company}{SEPARATOR}{summary}"
    if len(base) > max_length:
        base = base[:max_length].rstrip(SEPARATOR)
    return base


def ensure_document_ext(filename: str) -> str:
    if not filename.lower().endswith(DOCUMENT_EXT):
        filename += DOCUMENT_EXT
    return filename
