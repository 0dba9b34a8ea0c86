# confusense/rephrase.py
"""
Rephrasing of study text through a text-generation provider.

Providers are tried in priority order; the first one holding a usable key is
the only one called. Every failure comes back as a fixed message, never as an
exception.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import requests

from confusense.config import Settings, is_usable_key
from confusense.models import RephraseRequest, RephraseResult

logger = logging.getLogger(__name__)

NO_KEY_MESSAGE = "No API key provided."
TUTOR_SYSTEM_PROMPT = "You are a helpful tutor."

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


def build_prompt(request: RephraseRequest) -> str:
    if request.event_type == "facial-confusion":
        return (
            "The user appears confused based on facial expression analysis "
            f"(confusion level: {request.confusion_level}). Please rephrase this text in simpler "
            f"terms with analogies and examples: {request.content}"
        )
    if request.event_type == "text-selection":
        return (
            "The user selected this specific text, indicating they need clarification. "
            f"Please explain this part in simpler terms: {request.content}"
        )
    return f"Rephrase this for a confused learner: {request.content}"


class TextProvider(ABC):
    """One text-generation backend: ``generate(prompt) -> RephraseResult``."""
    name = "provider"
    error_message = "Error contacting provider."
    empty_message = "No response from provider."

    def __init__(self, api_key: Optional[str], timeout: float = 15.0):
        self.api_key = api_key
        self.timeout = float(timeout)

    def is_configured(self) -> bool:
        return is_usable_key(self.api_key)

    def generate(self, prompt: str) -> RephraseResult:
        try:
            data = self._post(prompt)
        except Exception:
            logger.exception(f"[rephrase] {self.name} request failed")
            return RephraseResult(text=self.error_message, ok=False, provider=self.name)

        text = self._extract(data)
        if not text:
            logger.warning(f"[rephrase] {self.name} returned no text")
            return RephraseResult(text=self.empty_message, ok=False, provider=self.name)
        return RephraseResult(text=text, ok=True, provider=self.name)

    @abstractmethod
    def _post(self, prompt: str) -> dict: ...

    @staticmethod
    @abstractmethod
    def _extract(data) -> Optional[str]: ...


class OpenAIProvider(TextProvider):
    name = "openai"
    error_message = "Error contacting OpenAI."
    empty_message = "No response from OpenAI."

    def __init__(self, api_key: Optional[str], model: str = "gpt-3.5-turbo",
                 max_tokens: int = 150, timeout: float = 15.0):
        super().__init__(api_key, timeout)
        self.model = model
        self.max_tokens = int(max_tokens)

    def _post(self, prompt: str) -> dict:
        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": TUTOR_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self.max_tokens,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        resp = requests.post(OPENAI_URL, headers=headers, json=body, timeout=self.timeout)
        return resp.json()

    @staticmethod
    def _extract(data) -> Optional[str]:
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) else None


class GeminiProvider(TextProvider):
    name = "gemini"
    error_message = "Error contacting Gemini."
    empty_message = "No response from Gemini."

    def __init__(self, api_key: Optional[str], model: str = "gemini-1.5-flash", timeout: float = 15.0):
        super().__init__(api_key, timeout)
        self.model = model

    def _post(self, prompt: str) -> dict:
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        resp = requests.post(
            GEMINI_URL.format(model=self.model),
            params={"key": self.api_key},
            headers={"Content-Type": "application/json"},
            json=body,
            timeout=self.timeout,
        )
        return resp.json()

    @staticmethod
    def _extract(data) -> Optional[str]:
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) else None


def default_providers(settings: Settings) -> List[TextProvider]:
    return [
        OpenAIProvider(settings.OPENAI_API_KEY, model=settings.OPENAI_MODEL,
                       max_tokens=settings.OPENAI_MAX_TOKENS, timeout=settings.PROVIDER_TIMEOUT),
        GeminiProvider(settings.GEMINI_API_KEY, model=settings.GEMINI_MODEL,
                       timeout=settings.PROVIDER_TIMEOUT),
    ]


class RephraseDispatcher:
    """Sends a rephrase request to the first configured provider.

    Concurrent dispatches are not serialized or de-duplicated.
    """
    def __init__(self, providers: Sequence[TextProvider]):
        self.providers = list(providers)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RephraseDispatcher":
        return cls(default_providers(settings))

    def dispatch(self, request: RephraseRequest) -> RephraseResult:
        logger.info(f"[rephrase] {request.event_type} event level={request.confusion_level}")
        prompt = build_prompt(request)
        for provider in self.providers:
            if provider.is_configured():
                logger.debug(f"[rephrase] using {provider.name}")
                return provider.generate(prompt)
        logger.info("[rephrase] no usable API key")
        return RephraseResult(text=NO_KEY_MESSAGE, ok=False, provider=None)

    def rephrase(self, request: RephraseRequest) -> str:
        return self.dispatch(request).text
