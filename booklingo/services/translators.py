# booklingo/services/translators.py
"""
Translation ports.

The pipeline depends only on TranslationPort:
    translate(ordered strings) -> ordered strings (same length and order)

Concrete ports own their HTTP details, credentials and timeouts. A failing
call raises for the whole batch; the scheduler turns it into a
TranslationError tagged with the batch index.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional, Protocol, Sequence, runtime_checkable

from booklingo.config.settings import AppSettings
from booklingo.services.exceptions import ConfigurationError, TranslationError

# Module logger
logger = logging.getLogger(__name__)

GOOGLE_TRANSLATE_V2_URL = "https://translation.googleapis.com/language/translate/v2"


@runtime_checkable
class TranslationPort(Protocol):
    """External translation capability used by BatchScheduler."""

    def translate(self, texts: Sequence[str]) -> list[str]:
        ...


def is_whitespace(text: str) -> bool:
    """True for empty or whitespace-only snippets."""
    return not text or text.isspace()


class PassthroughTranslator:
    """Identity port: returns its input. Used for dry runs."""

    def translate(self, texts: Sequence[str]) -> list[str]:
        return list(texts)


def _post_json(
    url: str,
    payload: object,
    timeout: float,
    headers: Optional[dict[str, str]] = None,
) -> object:
    """POST a JSON body and decode the JSON response."""
    body = json.dumps(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=body,
        headers={"Content-Type": "application/json; charset=utf-8", **(headers or {})},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            raw = response.read()
    except urllib.error.HTTPError as e:
        detail = e.read().decode("utf-8", errors="replace")[:200]
        raise TranslationError(f"API request failed (HTTP {e.code}): {detail}") from e
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise TranslationError(f"API request failed: {e}") from e

    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise TranslationError(f"Could not parse API response: {e}") from e


class GoogleTranslator:
    """
    Google Cloud Translation v2.

    Whitespace-only snippets are not sent; they are passed through at their
    original positions so the result length always matches the input.
    """

    def __init__(
        self,
        api_key: str,
        target_language: str,
        timeout: float = 60,
        url: str = GOOGLE_TRANSLATE_V2_URL,
    ):
        if not api_key:
            raise ConfigurationError("Google Translate requires an API key")
        self.api_key = api_key
        self.target_language = target_language
        self.timeout = timeout
        self.url = url

    def translate(self, texts: Sequence[str]) -> list[str]:
        texts = list(texts)
        positions = [i for i, text in enumerate(texts) if not is_whitespace(text)]
        if not positions:
            return texts

        payload = {
            "q": [texts[i] for i in positions],
            "target": self.target_language,
            "format": "text",
        }
        url = f"{self.url}?{urllib.parse.urlencode({'key': self.api_key})}"
        data = _post_json(url, payload, self.timeout)

        try:
            translations = [t["translatedText"] for t in data["data"]["translations"]]
        except (KeyError, TypeError) as e:
            raise TranslationError(f"Unexpected Google Translate response: {e}") from e

        if len(translations) != len(positions):
            raise TranslationError(
                f"Google Translate returned {len(translations)} translations for {len(positions)} texts"
            )

        result = list(texts)
        for position, translated in zip(positions, translations):
            result[position] = translated
        return result


class LlmTranslator:
    """
    Completion-style LLM endpoint ({endpoint}/v1/{model}/completions).

    One prompt per snippet, sent sequentially within the batch.
    """

    PROMPT_TEMPLATE = "Please translate the following into {to}:\n{snippet}"

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        target_language: str,
        model: str = "llama-3.2-3B",
        max_tokens: int = 100,
        timeout: float = 60,
    ):
        if not api_key:
            raise ConfigurationError("LLM provider requires an API key")
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.target_language = target_language
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    def translate(self, texts: Sequence[str]) -> list[str]:
        return [
            text if is_whitespace(text) else self._translate_one(text)
            for text in texts
        ]

    def _translate_one(self, snippet: str) -> str:
        payload = {
            "model": self.model,
            "prompt": self.PROMPT_TEMPLATE.format(to=self.target_language, snippet=snippet),
            "max_tokens": self.max_tokens,
        }
        url = f"{self.endpoint}/v1/{self.model}/completions"
        data = _post_json(url, payload, self.timeout,
                          headers={"Authorization": f"Bearer {self.api_key}"})
        try:
            return data["choices"][-1]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationError(f"Unexpected completion response: {e}") from e


def create_translator(settings: AppSettings) -> TranslationPort:
    """
    Build the port selected by settings.provider.

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    provider = settings.provider.lower()
    if provider == "google":
        return GoogleTranslator(
            api_key=settings.google_api_key or "",
            target_language=settings.target_language,
            timeout=settings.request_timeout,
        )
    if provider == "llm":
        return LlmTranslator(
            endpoint=settings.llm_endpoint,
            api_key=settings.llm_api_key or "",
            target_language=settings.target_language,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            timeout=settings.request_timeout,
        )
    if provider == "passthrough":
        return PassthroughTranslator()
    raise ConfigurationError(f"Unknown translation provider: {settings.provider}")
