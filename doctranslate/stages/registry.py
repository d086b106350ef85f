from pathlib import Path

from doctranslate.config.settings import Settings
from doctranslate.ocr.factory import OcrEngineFactory
from doctranslate.pdf.factory import PdfRendererFactory
from doctranslate.stages.ocr import OcrStage, ocr_stage_spec
from doctranslate.stages.pdf import PdfStage, pdf_stage_spec
from doctranslate.stages.translate import TranslateStage, translate_stage_spec
from doctranslate.store.base import BaseJobStore
from doctranslate.translation.factory import TranslatorFactory
from doctranslate.worker.job_runner import JobRunner
from doctranslate.worker.models import BaseStageHandler, StageSpec

STAGE_NAMES = ("ocr", "translate", "pdf")


def build_stage(name: str, settings: Settings) -> tuple[StageSpec, BaseStageHandler]:
    """Build the StageSpec and handler of a stage, with engines chosen by settings."""
    if name == "ocr":
        return ocr_stage_spec(settings), OcrStage(OcrEngineFactory.create(settings))
    if name == "translate":
        return translate_stage_spec(settings), TranslateStage(TranslatorFactory.create(settings))
    if name == "pdf":
        return pdf_stage_spec(settings), PdfStage(
            PdfRendererFactory.create(settings), Path(settings.pdf_output_dir)
        )
    raise ValueError(f"Unknown stage '{name}'. Choose from: {list(STAGE_NAMES)}")


def build_job_runner(name: str, settings: Settings, store: BaseJobStore) -> JobRunner:
    spec, handler = build_stage(name, settings)
    return JobRunner(
        spec,
        handler,
        store,
        max_attempts=settings.max_handler_attempts,
        retry_backoff_seconds=settings.handler_retry_backoff_seconds,
        dead_letter_queue=settings.dead_letter_queue,
    )
