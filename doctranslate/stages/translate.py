from typing import Any

from doctranslate.config.settings import Settings
from doctranslate.logging.logger import Log
from doctranslate.store.models import JobRecord, JobStatus
from doctranslate.translation.base import BaseTranslator
from doctranslate.translation.text import normalize_text
from doctranslate.worker.models import BaseStageHandler, StageSpec


def translate_stage_spec(settings: Settings) -> StageSpec:
    return StageSpec(
        name="translate",
        input_queue=settings.translation_queue,
        output_queue=settings.pdf_queue,
        prefetch=settings.translate_prefetch,
        entry_status=JobStatus.OCR_COMPLETED,
        processing_status=JobStatus.TRANSLATION_PROCESSING,
        completed_status=JobStatus.TRANSLATION_COMPLETED,
        failed_status=JobStatus.TRANSLATION_FAILED,
        timeout_seconds=settings.translate_timeout_seconds or None,
    )


class TranslateStage(BaseStageHandler):
    """Normalizes OCR text and translates it."""

    def __init__(self, translator: BaseTranslator) -> None:
        self._translator = translator

    def handle(self, record: JobRecord) -> dict[str, Any]:
        normalized = normalize_text(record.original_text or "")
        if not normalized:
            Log.warning(f"Job {record.id} has no text to translate")
            translated = ""
        else:
            translated = self._translator.translate(normalized)
        return {"normalized_text": normalized, "translated_text": translated}
