import os
import tempfile
import time
from pathlib import Path
from typing import Any

from doctranslate.config.settings import Settings
from doctranslate.pdf.base import BasePdfRenderer
from doctranslate.pdf.exceptions import PdfRenderError
from doctranslate.store.models import JobRecord, JobStatus
from doctranslate.worker.models import BaseStageHandler, StageSpec


def pdf_stage_spec(settings: Settings) -> StageSpec:
    return StageSpec(
        name="pdf",
        input_queue=settings.pdf_queue,
        output_queue=settings.result_queue,
        prefetch=settings.pdf_prefetch,
        entry_status=JobStatus.TRANSLATION_COMPLETED,
        processing_status=JobStatus.PDF_PROCESSING,
        completed_status=JobStatus.COMPLETED,
        failed_status=JobStatus.PDF_FAILED,
        timeout_seconds=settings.pdf_timeout_seconds or None,
    )


def output_file_path(output_dir: Path, source_path: str, millis: int) -> Path:
    """Build output path: {output_dir}/{source stem}_{millis}.pdf, never an existing file."""
    stem = Path(source_path).stem or "document"
    candidate = output_dir / f"{stem}_{millis}.pdf"
    counter = 1
    while candidate.exists():
        candidate = output_dir / f"{stem}_{millis}_{counter}.pdf"
        counter += 1
    return candidate


class PdfStage(BaseStageHandler):
    """Renders the translated text and announces the finished document."""

    def __init__(self, renderer: BasePdfRenderer, output_dir: Path) -> None:
        self._renderer = renderer
        self._output_dir = output_dir

    def handle(self, record: JobRecord) -> dict[str, Any]:
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".render-", suffix=".pdf", dir=self._output_dir)
            os.close(fd)
        except OSError as exc:
            raise PdfRenderError(
                f"Cannot prepare output directory {self._output_dir}: {exc}"
            ) from exc

        tmp_path = Path(tmp_name)
        try:
            self._renderer.render(record.translated_text or "", tmp_path)
            final_path = output_file_path(
                self._output_dir, record.source_path, time.time_ns() // 1_000_000
            )
            os.replace(tmp_path, final_path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise PdfRenderError(f"Cannot write PDF for job {record.id}: {exc}") from exc
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise
        return {"output_path": str(final_path)}

    def output_payload(self, record: JobRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "outputPath": record.output_path,
            "originalText": record.normalized_text or record.original_text,
            "normalizedText": record.normalized_text,
            "translatedText": record.translated_text,
            "status": record.status.value,
        }
