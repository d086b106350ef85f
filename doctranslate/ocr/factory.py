from doctranslate.config.settings import Settings
from doctranslate.ocr.base import BaseOcrEngine
from doctranslate.ocr.tesseract_adapter import TesseractAdapter


class OcrEngineFactory:
    """Creates the configured OCR adapter."""

    ENGINES = ("tesseract",)

    @classmethod
    def create(cls, settings: Settings) -> BaseOcrEngine:
        engine = settings.ocr_engine.lower()
        if engine == "tesseract":
            return TesseractAdapter(
                language=settings.ocr_language,
                config=settings.tesseract_config,
                tesseract_cmd=settings.tesseract_cmd,
            )
        raise ValueError(f"Unknown OCR engine '{engine}'. Choose from: {list(cls.ENGINES)}")
