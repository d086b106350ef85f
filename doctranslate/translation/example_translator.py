"""Offline translator for local development and tests.

Returns the input unchanged. Use it as a template when adding a provider:
implement BaseTranslator and register it in TranslatorFactory.
"""

from doctranslate.translation.base import BaseTranslator


class ExampleTranslator(BaseTranslator):
    def translate(self, text: str) -> str:
        return text
