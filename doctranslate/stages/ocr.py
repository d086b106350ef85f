from pathlib import Path
from typing import Any

from doctranslate.config.settings import Settings
from doctranslate.ocr.base import BaseOcrEngine
from doctranslate.store.models import JobRecord, JobStatus
from doctranslate.worker.models import BaseStageHandler, StageSpec


def ocr_stage_spec(settings: Settings) -> StageSpec:
    return StageSpec(
        name="ocr",
        input_queue=settings.ocr_queue,
        output_queue=settings.translation_queue,
        prefetch=settings.ocr_prefetch,
        entry_status=JobStatus.UPLOADED,
        processing_status=JobStatus.OCR_PROCESSING,
        completed_status=JobStatus.OCR_COMPLETED,
        failed_status=JobStatus.OCR_FAILED,
        timeout_seconds=settings.ocr_timeout_seconds or None,
    )


class OcrStage(BaseStageHandler):
    """Extracts the text of the uploaded image."""

    def __init__(self, engine: BaseOcrEngine) -> None:
        self._engine = engine

    def handle(self, record: JobRecord) -> dict[str, Any]:
        return {"original_text": self._engine.extract(Path(record.source_path))}
