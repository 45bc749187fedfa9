import io
import logging

import fitz  # pymupdf
import pytesseract
from PIL import Image

from config.settings import OCR_LANG, OCR_MAX_PAGES, OCR_DPI
from pipeline.exceptions import ExtractionError
from .base import BaseTextExtractor
from .image_ocr_loader import ocr_image

logger = logging.getLogger("ocr")


class PDFOCRLoader(BaseTextExtractor):
    """
    스캔 PDF 텍스트 추출

    - 텍스트 레이어가 있는 페이지는 그대로 사용
    - 없는 페이지는 이미지로 렌더링 후 Tesseract OCR
    - 비용/시간 제한을 위해 앞쪽 max_pages 페이지만 처리
    """
    file_type = "pdf"

    def __init__(self, lang: str = OCR_LANG, max_pages: int = OCR_MAX_PAGES, dpi: int = OCR_DPI):
        self.lang = lang
        self.max_pages = max_pages
        self.dpi = dpi

    def extract_text(self, file_path: str) -> str:
        try:
            with fitz.open(file_path) as doc:
                texts = []
                for page_no, page in enumerate(doc, start=1):
                    if page_no > self.max_pages:
                        break

                    text = self._page_text(page)
                    if text:
                        texts.append(text)

                    logger.debug(f"[OCR] page={page_no}, len={len(text)}")

                return "\n".join(texts).strip()

        except (RuntimeError, ValueError, OSError, pytesseract.TesseractError) as e:
            # fitz 는 손상된 PDF 에 대해 RuntimeError 계열(FileDataError)을 던짐
            logger.error(f"[OCR] failed: {file_path} -> {e}")
            raise ExtractionError(f"OCR 처리 중 오류 발생: {e}") from e

    def _page_text(self, page) -> str:
        text = (
            page.get_text("text")
            .replace("\xa0", " ")
            .strip()
        )
        if text:
            return text

        pix = page.get_pixmap(dpi=self.dpi)
        with Image.open(io.BytesIO(pix.tobytes("png"))) as image:
            return ocr_image(image, self.lang)
