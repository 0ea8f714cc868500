"""Translation and text language detection over the OpenAI chat endpoint."""

from __future__ import annotations

import logging
import re
from typing import Final

from openai import AsyncOpenAI

from ..languages import LANGUAGE_NAME, language_name
from ._client import OpenAIService
from .results import (
    AlternativesResult,
    DetectionResult,
    InputKind,
    InvalidInputError,
    PronunciationResult,
    QualityResult,
    TranslationResult,
    describe_failure,
)
from .text_utils import format_structured_text, strip_wrapping_quotes

LOGGER = logging.getLogger(__name__)

TRANSLATE_SYSTEM_PROMPT: Final[str] = "You are a professional translator. Provide accurate and natural translations."
TRANSLATE_PROMPT_TEMPLATE: Final[str] = (
    "Translate the following text from {source} to {target}. "
    "Provide only the translation without any additional text or explanations:\n\n\"{text}\""
)
DETECT_SYSTEM_PROMPT: Final[str] = (
    "You are a language detection expert. Respond with only the ISO 639-1 language code."
)
DETECT_PROMPT_TEMPLATE: Final[str] = (
    "Detect the language of the following text and respond with only the ISO 639-1 "
    "language code (e.g., 'en', 'es', 'fr'):\n\n\"{text}\""
)
PRONUNCIATION_PROMPT_TEMPLATE: Final[str] = (
    "Provide a pronunciation guide for the following {language} text using IPA "
    "(International Phonetic Alphabet):\n\n\"{text}\"\n\nRespond with only the IPA pronunciation."
)
ALTERNATIVES_PROMPT_TEMPLATE: Final[str] = (
    "Provide {count} alternative translations for the following text from {source} to {target}. "
    "Each translation should be slightly different in style or formality. "
    "Respond with only the translations, one per line:\n\n\"{text}\""
)
QUALITY_PROMPT_TEMPLATE: Final[str] = (
    "Rate the quality of this translation from {source} to {target} on a scale of 1-10, "
    "where 10 is perfect. Provide a brief explanation for your rating.\n\n"
    "Original: \"{original}\"\nTranslation: \"{translated}\"\n\n"
    "Respond with: \"Rating: X/10 - [explanation]\""
)
DETECTION_CONFIDENCE: Final[float] = 0.95
_LANGUAGE_CODE_RE = re.compile(r"[a-z]{2,3}")
_LIST_MARKER_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


class TranslationClient(OpenAIService):
    """Text translation helpers; every call goes through the shared throttle."""

    async def translate_text(self, text: str, source_language: str, target_language: str) -> TranslationResult:
        client = self.openai()
        source_name = _display_name(source_language)
        target_name = _display_name(target_language)
        LOGGER.info("Translating text from %s to %s", source_name, target_name)
        if not text.strip():
            return TranslationResult(
                success=True,
                original_text=text,
                translated_text="",
                source_language=source_language,
                target_language=target_language,
            )

        prompt = TRANSLATE_PROMPT_TEMPLATE.format(source=source_name, target=target_name, text=text)
        try:
            content = await self.limiter.call(
                self._complete, client, TRANSLATE_SYSTEM_PROMPT, prompt, temperature=0.3
            )
        except Exception as exc:
            LOGGER.error("Translation error: %s", exc)
            return TranslationResult(
                original_text=text,
                translated_text=None,
                source_language=source_language,
                target_language=target_language,
                **describe_failure(exc, "Translation"),
            )

        return TranslationResult(
            success=True,
            original_text=text,
            translated_text=format_structured_text(strip_wrapping_quotes(content)),
            source_language=source_language,
            target_language=target_language,
        )

    async def detect_language(self, text: str) -> DetectionResult:
        client = self.openai()
        try:
            if not text.strip():
                raise InvalidInputError("Cannot detect the language of empty text")
            content = await self.limiter.call(
                self._complete,
                client,
                DETECT_SYSTEM_PROMPT,
                DETECT_PROMPT_TEMPLATE.format(text=text),
                temperature=0.1,
                max_tokens=10,
            )
            code = parse_language_code(content)
        except Exception as exc:
            LOGGER.error("Language detection error: %s", exc)
            return DetectionResult(
                language_code="en",
                language_name=language_name("en"),
                confidence=0.0,
                **describe_failure(exc, "Language detection"),
            )

        LOGGER.debug("Detected language %s", code)
        return DetectionResult(
            success=True,
            language_code=code,
            language_name=LANGUAGE_NAME.get(code, "Unknown"),
            confidence=DETECTION_CONFIDENCE,
        )

    async def get_pronunciation(self, text: str, language: str) -> PronunciationResult:
        client = self.openai()
        prompt = PRONUNCIATION_PROMPT_TEMPLATE.format(language=_display_name(language), text=text)
        try:
            content = await self.limiter.call(
                self._complete, client, "You are a pronunciation expert. Provide IPA transcriptions.", prompt,
                temperature=0.1,
            )
        except Exception as exc:
            LOGGER.error("Pronunciation error: %s", exc)
            return PronunciationResult(
                text=text, pronunciation=None, language=language, **describe_failure(exc, "Pronunciation")
            )
        return PronunciationResult(success=True, text=text, pronunciation=content.strip(), language=language)

    async def get_alternative_translations(
        self, text: str, source_language: str, target_language: str, count: int = 3
    ) -> AlternativesResult:
        client = self.openai()
        prompt = ALTERNATIVES_PROMPT_TEMPLATE.format(
            count=count,
            source=_display_name(source_language),
            target=_display_name(target_language),
            text=text,
        )
        try:
            content = await self.limiter.call(
                self._complete,
                client,
                "You are a professional translator providing alternative translations.",
                prompt,
                temperature=0.7,
            )
        except Exception as exc:
            LOGGER.error("Alternative translations error: %s", exc)
            return AlternativesResult(
                original_text=text,
                alternatives=[],
                source_language=source_language,
                target_language=target_language,
                **describe_failure(exc, "Alternative translations"),
            )

        alternatives = [
            strip_wrapping_quotes(_LIST_MARKER_RE.sub("", line)) for line in content.splitlines() if line.strip()
        ]
        return AlternativesResult(
            success=True,
            original_text=text,
            alternatives=alternatives[:count],
            source_language=source_language,
            target_language=target_language,
        )

    async def validate_translation(
        self, original_text: str, translated_text: str, source_language: str, target_language: str
    ) -> QualityResult:
        client = self.openai()
        prompt = QUALITY_PROMPT_TEMPLATE.format(
            source=_display_name(source_language),
            target=_display_name(target_language),
            original=original_text,
            translated=translated_text,
        )
        try:
            content = await self.limiter.call(
                self._complete, client, "You are a translation quality assessor.", prompt, temperature=0.3
            )
        except Exception as exc:
            LOGGER.error("Translation validation error: %s", exc)
            return QualityResult(
                original_text=original_text,
                translated_text=translated_text,
                validation=None,
                source_language=source_language,
                target_language=target_language,
                **describe_failure(exc, "Translation validation"),
            )
        return QualityResult(
            success=True,
            original_text=original_text,
            translated_text=translated_text,
            validation=content.strip(),
            source_language=source_language,
            target_language=target_language,
        )

    async def _complete(
        self,
        client: AsyncOpenAI,
        system_prompt: str,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int | None = None,
    ) -> str:
        kwargs: dict[str, object] = {"temperature": temperature}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens
        response = await client.chat.completions.create(
            model=self.settings.translate_model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            **kwargs,
        )
        choice = response.choices[0]
        return getattr(choice.message, "content", None) or ""


def parse_language_code(reply: str) -> str:
    """Extract the ISO code from a model reply such as ``"'es'"`` or ``"ES."``."""
    match = _LANGUAGE_CODE_RE.search(reply.strip().lower())
    if match is None:
        raise InvalidInputError(f"Unrecognised language code in reply: {reply!r}")
    return match.group(0)


def _display_name(language: str) -> str:
    """Prompts read better with names; accept either a code or a name."""
    return LANGUAGE_NAME.get((language or "").lower(), language or language_name(None))


__all__ = ["TranslationClient", "parse_language_code"]
