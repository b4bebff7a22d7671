import pytest

from helpflow.config import KeyBindings
from helpflow.keyboard import HelpAction, HelpKeyMap, KeyChord, KeyEvent, TutorialAction, TutorialKeyMap


class TestKeyChord:

    def test_parse_modifiers(self):
        chord = KeyChord.parse("Ctrl+Shift+H")
        assert chord.key == "h"
        assert chord.modifiers == frozenset({"ctrl", "shift"})
        assert str(chord) == "ctrl+shift+h"

    def test_aliases(self):
        assert KeyChord.parse("esc") == KeyChord("escape")
        assert KeyEvent("ArrowRight").chord == KeyChord("right")
        assert KeyEvent(" ").chord == KeyChord("space")

    def test_plus_key(self):
        assert KeyChord.parse("+").key == "+"

    @pytest.mark.parametrize("text", ["", "hyper+k"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            KeyChord.parse(text)

    def test_event_from_chord(self):
        event = KeyEvent.from_chord("ctrl+shift+h")
        assert event.ctrl and event.shift and not event.alt
        assert event.chord == KeyChord.parse("ctrl+shift+h")


class TestHelpKeyMap:

    def test_defaults(self):
        keys = HelpKeyMap()
        assert keys.resolve(KeyEvent("F1")) is HelpAction.SHOW_HELP
        assert keys.resolve(KeyEvent("H", ctrl=True, shift=True)) is HelpAction.TOGGLE_HELP
        assert keys.resolve(KeyEvent("Escape")) is HelpAction.HIDE_HELP
        assert keys.resolve(KeyEvent("h", ctrl=True)) is None
        assert keys.is_show_help(KeyEvent("f1"))

    def test_custom_bindings(self):
        keys = HelpKeyMap(KeyBindings(show_help="?", toggle_help="alt+h"))
        assert keys.resolve(KeyEvent("?")) is HelpAction.SHOW_HELP
        assert keys.resolve(KeyEvent("F1")) is None

    def test_duplicate_chords_rejected(self):
        with pytest.raises(ValueError):
            HelpKeyMap(KeyBindings(show_help="f1", toggle_help="F1"))


def test_tutorial_key_map():
    keys = TutorialKeyMap()
    assert keys.resolve(KeyEvent("ArrowRight")) is TutorialAction.NEXT
    assert keys.resolve(KeyEvent("ArrowLeft")) is TutorialAction.PREVIOUS
    assert keys.resolve(KeyEvent(" ")) is TutorialAction.PLAY_PAUSE
    assert keys.resolve(KeyEvent("Escape")) is TutorialAction.EXIT
    assert keys.resolve(KeyEvent("x")) is None
