import textwrap
from pathlib import Path

import pymupdf

from doctranslate.pdf.base import BasePdfRenderer
from doctranslate.pdf.exceptions import PdfRenderError


class PyMuPdfRenderer(BasePdfRenderer):
    """Renders text to PDF using PyMuPDF."""

    MARGIN = 56.0

    def __init__(self, font_path: str = "", font_size: float = 11.0) -> None:
        self._font_path = font_path
        self._font_size = font_size

    def render(self, text: str, destination: Path) -> None:
        try:
            self._draw(text, destination)
        except Exception as exc:
            raise PdfRenderError(f"pymupdf rendering failed: {exc}") from exc

    def _draw(self, text: str, destination: Path) -> None:
        paper = pymupdf.paper_rect("a4")
        leading = self._font_size * 1.4
        lines_per_page = max(1, int((paper.height - 2 * self.MARGIN) // leading))
        chars_per_line = max(20, int((paper.width - 2 * self.MARGIN) // (self._font_size * 0.5)))

        lines: list[str] = []
        for source_line in text.split("\n"):
            lines.extend(textwrap.wrap(source_line, width=chars_per_line) or [""])

        font_args: dict[str, str] = {"fontname": "helv"}
        if self._font_path:
            font_args = {"fontname": "F0", "fontfile": self._font_path}

        with pymupdf.open() as doc:  # type: ignore[no-untyped-call]
            for start in range(0, max(len(lines), 1), lines_per_page):
                page = doc.new_page(width=paper.width, height=paper.height)
                chunk = lines[start : start + lines_per_page]
                if chunk:
                    page.insert_text(
                        (self.MARGIN, self.MARGIN + self._font_size),
                        chunk,
                        fontsize=self._font_size,
                        lineheight=1.4,
                        **font_args,
                    )
            doc.save(str(destination))
