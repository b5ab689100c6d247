"""
Supported immersion languages.

Each guild gets one channel per language. The table below is the single source
of truth for language codes; per-guild channel and webhook data are stored in
rows keyed by these codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True, slots=True)
class Language:
    """A language that can be relayed between immersion channels."""

    code: str
    name: str
    channel_name: str
    emoji: str
    deepl_source_code: str
    deepl_target_code: str


LANGUAGES: Dict[str, Language] = {
    lang.code: lang
    for lang in (
        Language("EN", "English", "english", "🇺🇸", "EN", "EN-US"),
        Language("ES", "Spanish", "spanish", "🇪🇸", "ES", "ES"),
        Language("PT-BR", "Portuguese", "portuguese", "🇧🇷", "PT", "PT-BR"),
        Language("FR", "French", "french", "🇫🇷", "FR", "FR"),
        Language("DE", "German", "german", "🇩🇪", "DE", "DE"),
        Language("IT", "Italian", "italian", "🇮🇹", "IT", "IT"),
        Language("JA", "Japanese", "japanese", "🇯🇵", "JA", "JA"),
        Language("KO", "Korean", "korean", "🇰🇷", "KO", "KO"),
        Language("ZH", "Chinese", "chinese", "🇨🇳", "ZH", "ZH-HANS"),
    )
}

LANGUAGE_CODES: List[str] = list(LANGUAGES)

# Channel names may carry a decorative "🇺🇸︱english" prefix
CHANNEL_NAME_SEPARATOR = "︱"


def get_language(code: str) -> Language | None:
    return LANGUAGES.get(code)


def get_language_by_channel_name(channel_name: str) -> Language | None:
    """Match a channel name such as ``english`` or ``🇺🇸︱english`` to its language."""
    normalized = channel_name.split(CHANNEL_NAME_SEPARATOR)[-1].strip().lower()
    for lang in LANGUAGES.values():
        if lang.channel_name == normalized:
            return lang
    return None


def get_other_languages(exclude_code: str) -> List[Language]:
    return [lang for lang in LANGUAGES.values() if lang.code != exclude_code]


def resolve_target_languages(source_code: str, enabled_languages: List[str]) -> List[str]:
    """
    Return the language codes a message written in ``source_code`` fans out to.

    An empty ``enabled_languages`` list means every supported language is
    enabled for the guild. Unknown and repeated codes are dropped.
    """
    if enabled_languages:
        targets: List[str] = []
        for code in enabled_languages:
            if code != source_code and code in LANGUAGES and code not in targets:
                targets.append(code)
        return targets
    return [lang.code for lang in get_other_languages(source_code)]


def count_target_languages(source_code: str, enabled_languages: List[str]) -> int:
    """Number of languages a message is billed for; ``len(LANGUAGES) - 1`` when no subset is set."""
    if enabled_languages:
        return len(resolve_target_languages(source_code, enabled_languages))
    return len(LANGUAGES) - 1
