"""
TranslationGateway: fan-out of one text to every target language.

All translations resolve or none do. Provider calls run concurrently and the
whole batch is bounded by a single timeout; the first failure cancels the
remaining calls and surfaces as ``TranslationError``.
"""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from relaycord.configuration.languages import get_language
from relaycord.translation.translation_provider import TranslationError, TranslationProvider
from relaycord.util.logger import get_logger

logger = get_logger("translation_gateway")

DEFAULT_TIMEOUT_SECONDS = 15.0


class TranslationGateway:
    def __init__(self, provider: TranslationProvider, timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS) -> None:
        self._provider = provider
        self._timeout = timeout

    @property
    def provider(self) -> TranslationProvider:
        return self._provider

    async def translate(self, text: str, source_lang: Optional[str], target_lang: str) -> str:
        result = await self._provider.translate(text, source_lang, target_lang)
        return result.text

    async def translate_to_languages(self, text: str, source_lang: str, target_langs: List[str]) -> Dict[str, str]:
        """
        Translate ``text`` into each of ``target_langs``.

        Returns:
            Mapping of target language code to translated text, one entry per target.

        Raises:
            TranslationError: Any single translation failed or the batch timed out.
        """
        if get_language(source_lang) is None:
            raise TranslationError(f"Invalid source language code: {source_lang}")
        targets = list(dict.fromkeys(target_langs))
        if not targets:
            return {}

        tasks = [asyncio.create_task(self.translate(text, source_lang, lang)) for lang in targets]
        try:
            results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("[TRANSLATION] Timed out after %.1fs translating %s -> %s", self._timeout, source_lang, targets)
            raise TranslationError(f"Translation timed out after {self._timeout}s") from exc
        except TranslationError:
            raise
        except Exception as exc:
            raise TranslationError(f"Translation failed: {exc}") from exc
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        return dict(zip(targets, results))
