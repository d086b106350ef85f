import httpx
import openai

from doctranslate.translation.base import BaseTranslator
from doctranslate.translation.exceptions import TranslationError, TranslationNetworkError

SYSTEM_PROMPT = (
    "You are a professional translator. Translate the user's text into {language}. "
    "Keep every paragraph break (blank line) exactly where it is. "
    "Reply with the translation only, without notes or quotes."
)


class OpenAITranslator(BaseTranslator):
    """Translator built on an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        target_language: str,
        timeout_seconds: int,
        temperature: float = 0.0,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.OpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
        )
        self._model = model
        self._target_language = target_language
        self._temperature = max(0.0, min(1.0, temperature))

    def translate(self, text: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                messages=[
                    {
                        "role": "system",
                        "content": SYSTEM_PROMPT.format(language=self._target_language),
                    },
                    {"role": "user", "content": text},
                ],
            )
        except (openai.APIConnectionError, httpx.ConnectError, httpx.TimeoutException) as exc:
            raise TranslationNetworkError(
                f"Translation provider network error: {exc}"
            ) from exc
        except openai.APIError as exc:
            raise TranslationNetworkError(
                f"Translation provider API error: {exc}"
            ) from exc

        if not response.choices:
            raise TranslationError("Translation provider returned no choices")
        content = response.choices[0].message.content
        if content is None or not content.strip():
            raise TranslationError("Translation provider returned empty response")
        return content.strip()
