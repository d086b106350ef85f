from doctranslate.config.settings import Settings
from doctranslate.pdf.base import BasePdfRenderer
from doctranslate.pdf.pymupdf_adapter import PyMuPdfRenderer
from doctranslate.pdf.reportlab_adapter import ReportLabRenderer


class PdfRendererFactory:
    """Creates the correct PDF renderer based on settings."""

    ADAPTERS: dict[str, type[BasePdfRenderer]] = {
        "reportlab": ReportLabRenderer,
        "pymupdf": PyMuPdfRenderer,
    }

    @classmethod
    def create(cls, settings: Settings) -> BasePdfRenderer:
        engine = settings.pdf_engine.lower()
        adapter_cls = cls.ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown PDF engine '{engine}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls(  # type: ignore[call-arg]
            font_path=settings.pdf_font_path,
            font_size=settings.pdf_font_size,
        )
