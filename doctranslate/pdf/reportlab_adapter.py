from pathlib import Path

from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from doctranslate.pdf.base import BasePdfRenderer
from doctranslate.pdf.exceptions import PdfRenderError


class ReportLabRenderer(BasePdfRenderer):
    """Renders text to PDF with the reportlab canvas API.

    Built-in Helvetica only covers Latin-1; pass a TTF ``font_path`` for
    other scripts.
    """

    MARGIN = 56.0

    def __init__(self, font_path: str = "", font_size: float = 11.0) -> None:
        self._font_name = "Helvetica"
        self._font_size = font_size
        if font_path:
            name = Path(font_path).stem
            try:
                pdfmetrics.registerFont(TTFont(name, font_path))
            except (TTFError, OSError) as exc:
                raise PdfRenderError(f"Cannot load font {font_path}: {exc}") from exc
            self._font_name = name

    def render(self, text: str, destination: Path) -> None:
        try:
            self._draw(text, destination)
        except PdfRenderError:
            raise
        except Exception as exc:
            raise PdfRenderError(f"reportlab rendering failed: {exc}") from exc

    def _draw(self, text: str, destination: Path) -> None:
        width, height = A4
        leading = self._font_size * 1.4
        max_width = width - 2 * self.MARGIN

        pdf = canvas.Canvas(str(destination), pagesize=A4)
        pdf.setFont(self._font_name, self._font_size)
        y = height - self.MARGIN
        for source_line in text.split("\n"):
            wrapped = simpleSplit(source_line, self._font_name, self._font_size, max_width)
            for line in wrapped or [""]:
                if y < self.MARGIN:
                    pdf.showPage()
                    pdf.setFont(self._font_name, self._font_size)
                    y = height - self.MARGIN
                pdf.drawString(self.MARGIN, y, line)
                y -= leading
        pdf.save()
