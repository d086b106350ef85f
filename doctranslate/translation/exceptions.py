from doctranslate.worker.exceptions import StageError


class TranslationError(StageError):
    """Raised when translation fails."""


class TranslationNetworkError(TranslationError):
    """Raised when the translation provider call fails due to network/infrastructure issues."""
