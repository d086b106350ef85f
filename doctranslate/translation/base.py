from abc import ABC, abstractmethod


class BaseTranslator(ABC):
    """Contract for all translation adapters."""

    @abstractmethod
    def translate(self, text: str) -> str:
        """Translate ``text`` into the configured target language.

        Paragraph breaks (blank lines) in the input must survive.

        Raises:
            TranslationError: on any failure.
        """
