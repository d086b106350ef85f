from doctranslate.worker.exceptions import StageError


class PdfRenderError(StageError):
    """Raised when a PDF cannot be rendered or written."""
