from typing import ClassVar

from doctranslate.config.settings import Settings
from doctranslate.translation.base import BaseTranslator
from doctranslate.translation.example_translator import ExampleTranslator
from doctranslate.translation.openai_translator import OpenAITranslator


class TranslatorFactory:
    """Creates the configured translation adapter."""

    OPENAI_COMPATIBLE_BASE_URLS: ClassVar[dict[str, str]] = {
        "ollama": "http://localhost:11434/v1",
    }

    @classmethod
    def create(cls, settings: Settings) -> BaseTranslator:
        provider = settings.translation_provider.lower()
        if provider == "example":
            return ExampleTranslator()
        if provider == "openai":
            return OpenAITranslator(
                api_key=settings.translation_openai_api_key,
                model=settings.translation_openai_model_name,
                target_language=settings.translation_target_language,
                timeout_seconds=settings.translation_openai_timeout_seconds,
                temperature=settings.translation_openai_temperature,
            )
        if provider == "openai_compatible":
            base_url = settings.translation_openai_compatible_base_url.strip()
            if not base_url:
                raise ValueError(
                    "translation_openai_compatible_base_url is required for "
                    "translation_provider=openai_compatible"
                )
            return OpenAITranslator(
                api_key=settings.translation_openai_compatible_api_key,
                model=settings.translation_openai_compatible_model_name,
                target_language=settings.translation_target_language,
                timeout_seconds=settings.translation_openai_timeout_seconds,
                base_url=base_url,
            )
        if provider == "ollama":
            return OpenAITranslator(
                api_key="ollama",
                model=settings.translation_ollama_model_name,
                target_language=settings.translation_target_language,
                timeout_seconds=settings.translation_openai_timeout_seconds,
                base_url=cls.OPENAI_COMPATIBLE_BASE_URLS["ollama"],
            )
        supported = [
            "example",
            "openai",
            "openai_compatible",
            *sorted(cls.OPENAI_COMPATIBLE_BASE_URLS),
        ]
        raise ValueError(
            f"Unknown translation provider '{provider}'. Choose from: {supported}"
        )
