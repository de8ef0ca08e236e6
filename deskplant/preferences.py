"""
User preferences persisted alongside the plant.

Language selection only records the user's choice; string lookup is the
injected translate function's job.
"""

import logging
from collections.abc import Callable
from enum import Enum

from deskplant.events import Event
from deskplant.storage import (
    LANGUAGE_KEY,
    ONBOARDING_KEY,
    SOUND_ENABLED_KEY,
    KeyValueStore,
    load_or_none,
)

logger = logging.getLogger(__name__)

Translator = Callable[[str], str]


class Language(str, Enum):
    """Supported interface languages."""

    ENGLISH = "en"
    TURKISH = "tr"
    FRENCH = "fr"
    GERMAN = "de"

    @property
    def display_name(self) -> str:
        return {
            Language.ENGLISH: "English",
            Language.TURKISH: "Türkçe",
            Language.FRENCH: "Français",
            Language.GERMAN: "Deutsch",
        }[self]


DEFAULT_LANGUAGE = Language.ENGLISH


def identity_translate(key: str) -> str:
    """Fallback translator: the key is the text."""
    return key


class Preferences:
    """
    Small flags read on every launch.

    Events:
        on_language_changed(Language)
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.on_language_changed = Event("language_changed")

    @property
    def has_completed_onboarding(self) -> bool:
        return load_or_none(self.store, ONBOARDING_KEY) is True

    def complete_onboarding(self) -> None:
        self.store.save(ONBOARDING_KEY, True)

    @property
    def sound_enabled(self) -> bool:
        value = load_or_none(self.store, SOUND_ENABLED_KEY)
        # Unset means enabled
        return value if isinstance(value, bool) else True

    def set_sound_enabled(self, enabled: bool) -> None:
        self.store.save(SOUND_ENABLED_KEY, bool(enabled))

    @property
    def language(self) -> Language:
        value = load_or_none(self.store, LANGUAGE_KEY)
        try:
            return Language(value) if value else DEFAULT_LANGUAGE
        except ValueError:
            logger.warning("Unknown saved language %r, using %s", value, DEFAULT_LANGUAGE.value)
            return DEFAULT_LANGUAGE

    def set_language(self, language: Language) -> None:
        if language == self.language:
            return
        self.store.save(LANGUAGE_KEY, language.value)
        self.on_language_changed.emit(language)
