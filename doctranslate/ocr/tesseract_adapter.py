from pathlib import Path

import pytesseract
from PIL import Image, UnidentifiedImageError

from doctranslate.ocr.base import BaseOcrEngine
from doctranslate.ocr.exceptions import OcrError


class TesseractAdapter(BaseOcrEngine):
    """Extracts text from images using Tesseract via pytesseract."""

    def __init__(self, language: str = "eng", config: str = "", tesseract_cmd: str = "") -> None:
        self._language = language
        self._config = config
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def extract(self, image_path: Path) -> str:
        if not image_path.is_file():
            raise OcrError(f"Image not found: {image_path}")
        try:
            with Image.open(image_path) as image:
                text = pytesseract.image_to_string(
                    image, lang=self._language, config=self._config
                )
        except pytesseract.TesseractError as exc:
            raise OcrError(f"tesseract failed on {image_path}: {exc}") from exc
        except pytesseract.TesseractNotFoundError as exc:
            raise OcrError(f"tesseract is not installed: {exc}") from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise OcrError(f"Cannot read image {image_path}: {exc}") from exc
        return text.strip()
