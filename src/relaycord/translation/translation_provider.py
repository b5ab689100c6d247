"""
Translation providers.

A provider translates one text into one target language. Language arguments
are the internal codes of ``relaycord.configuration.languages``; each provider
maps them to its own code set.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from relaycord.configuration.languages import get_language
from relaycord.util.logger import get_logger

logger = get_logger("translation_provider")

DEEPL_FREE_API_URL = "https://api-free.deepl.com/v2"
DEEPL_PRO_API_URL = "https://api.deepl.com/v2"


class TranslationError(Exception):
    """A translation could not be produced."""


@dataclass
class TranslationResult:
    """Result of a single translation"""
    text: str
    detected_source_lang: Optional[str] = None


class TranslationProvider(ABC):
    """Abstract base class for translation backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable provider name"""

    @abstractmethod
    async def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> TranslationResult:
        """
        Translate ``text`` into ``target_lang``.

        Args:
            text: Text to translate
            source_lang: Internal source language code, or None to auto-detect
            target_lang: Internal target language code

        Raises:
            TranslationError: The provider failed or rejected the request.
        """

    async def aclose(self) -> None:
        """Release network resources. Default: nothing to release."""


def deepl_base_url(api_key: str) -> str:
    """Keys of the free plan end in ``:fx`` and must use the free endpoint."""
    return DEEPL_FREE_API_URL if api_key.endswith(":fx") else DEEPL_PRO_API_URL


class DeepLTranslationProvider(TranslationProvider):
    """DeepL REST API (``/v2/translate``) over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        api_key: str,
        api_url: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("DEEPL_API_KEY is not set")
        self._api_key = api_key
        self._base_url = (api_url or deepl_base_url(api_key)).rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return "DeepL"

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"DeepL-Auth-Key {self._api_key}"}

    async def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> TranslationResult:
        target = get_language(target_lang)
        if target is None:
            raise TranslationError(f"Invalid target language code: {target_lang}")

        payload: Dict[str, Any] = {"text": [text], "target_lang": target.deepl_target_code}
        if source_lang is not None:
            source = get_language(source_lang)
            if source is None:
                raise TranslationError(f"Invalid source language code: {source_lang}")
            payload["source_lang"] = source.deepl_source_code

        try:
            response = await self._client.post(f"{self._base_url}/translate", json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            raise TranslationError(f"DeepL request failed: {exc}") from exc

        if response.status_code != 200:
            raise TranslationError(f"DeepL API error: {response.status_code} - {response.text}")

        try:
            translation = response.json()["translations"][0]
            return TranslationResult(
                text=translation["text"],
                detected_source_lang=translation.get("detected_source_language"),
            )
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TranslationError("Malformed DeepL response") from exc

    async def get_usage(self) -> Dict[str, int]:
        """Characters used and allowed in the current DeepL billing period."""
        try:
            response = await self._client.get(f"{self._base_url}/usage", headers=self._headers())
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TranslationError(f"DeepL usage request failed: {exc}") from exc
        return {
            "character_count": int(data.get("character_count", 0)),
            "character_limit": int(data.get("character_limit", 0)),
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
