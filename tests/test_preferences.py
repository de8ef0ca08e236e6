"""Tests for preferences and events modules."""

from unittest.mock import MagicMock

import pytest

from deskplant.events import Event
from deskplant.preferences import DEFAULT_LANGUAGE, Language, Preferences
from deskplant.storage import LANGUAGE_KEY


class TestPreferences:
    """Tests for Preferences."""

    def test_onboarding(self, store):
        """Onboarding is incomplete until marked."""
        prefs = Preferences(store)
        assert not prefs.has_completed_onboarding
        prefs.complete_onboarding()
        assert prefs.has_completed_onboarding

    def test_sound_defaults_on(self, store):
        """Sound is on until turned off."""
        prefs = Preferences(store)
        assert prefs.sound_enabled
        prefs.set_sound_enabled(False)
        assert not prefs.sound_enabled

    def test_language_default(self, store):
        """English until changed."""
        assert Preferences(store).language == DEFAULT_LANGUAGE == Language.ENGLISH

    def test_unknown_language_falls_back(self, store):
        """An unsupported saved code means the default."""
        store.save(LANGUAGE_KEY, "xx")
        assert Preferences(store).language == DEFAULT_LANGUAGE

    def test_set_language_emits_once(self, store):
        """Changing language notifies; setting the same one does not."""
        prefs = Preferences(store)
        seen = []
        prefs.on_language_changed.add_listener(seen.append)
        prefs.set_language(Language.GERMAN)
        prefs.set_language(Language.GERMAN)
        assert seen == [Language.GERMAN]
        assert store.load(LANGUAGE_KEY) == "de"

    def test_display_names(self):
        """Each language has a native display name."""
        assert Language.TURKISH.display_name == "Türkçe"
        assert Language.FRENCH.display_name == "Français"


class TestEvent:
    """Tests for Event."""

    def test_listeners_called_in_order(self):
        """Listeners run in subscription order."""
        calls = []
        event = Event("test")
        event.add_listener(lambda v: calls.append(("a", v)))
        event.add_listener(lambda v: calls.append(("b", v)))
        event.emit(1)
        assert calls == [("a", 1), ("b", 1)]

    def test_remove_listener(self):
        """Removed listeners are not called."""
        listener = MagicMock()
        event = Event()
        event.add_listener(listener)
        event.remove_listener(listener)
        event.emit()
        listener.assert_not_called()
        assert len(event) == 0

    def test_failing_listener_isolated(self):
        """One failing listener does not block the rest."""
        after = MagicMock()
        event = Event()
        event.add_listener(MagicMock(side_effect=RuntimeError("boom")))
        event.add_listener(after)
        event.emit("x")
        after.assert_called_once_with("x")

    def test_non_callable_rejected(self):
        """Only callables can subscribe."""
        with pytest.raises(ValueError):
            Event().add_listener("nope")
