import pytesseract
from PIL import Image

from config.settings import OCR_LANG


def ocr_image(image: Image.Image, lang: str = OCR_LANG) -> str:
    """렌더링된 페이지 이미지 OCR (빈 줄 제거)"""
    text = pytesseract.image_to_string(image, lang=lang)

    lines = (line.strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)
