from abc import ABC, abstractmethod
from pathlib import Path


class BasePdfRenderer(ABC):
    """Contract for all PDF rendering adapters."""

    @abstractmethod
    def render(self, text: str, destination: Path) -> None:
        """Render plain text into a PDF written at ``destination``.

        Blank lines in ``text`` separate paragraphs; long lines are wrapped
        and pages are added as needed.

        Raises:
            PdfRenderError: if rendering or writing fails for any reason.
        """
