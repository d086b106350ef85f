from abc import ABC, abstractmethod
from pathlib import Path


class BaseOcrEngine(ABC):
    """Contract for all OCR adapters."""

    @abstractmethod
    def extract(self, image_path: Path) -> str:
        """Extract plain text from the image at ``image_path``.

        Raises:
            OcrError: if the image cannot be read or recognized.
        """
