from doctranslate.worker.exceptions import StageError


class OcrError(StageError):
    """Raised when text extraction from an image fails."""
