"""
Keyboard chords and bindings.

Converts raw key events into the small fixed set of help actions (show, toggle,
hide) and the tutorial navigation actions. Concrete key choices come from
:class:`helpflow.config.KeyBindings`; only the action sets are fixed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional

from .config import KeyBindings

logger = logging.getLogger(__name__)

MODIFIERS = frozenset({"ctrl", "shift", "alt", "meta"})

_ALIASES = {"esc": "escape", "control": "ctrl", "cmd": "meta", "arrowright": "right", "arrowleft": "left"}


class HelpAction(Enum):
    """The three global help actions."""
    SHOW_HELP = "show_help"
    TOGGLE_HELP = "toggle_help"
    HIDE_HELP = "hide_help"


class TutorialAction(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    PLAY_PAUSE = "play_pause"
    EXIT = "exit"


def _normalize(part: str) -> str:
    if part == " ":
        return "space"
    part = part.strip().lower()
    return _ALIASES.get(part, part)


@dataclass(frozen=True)
class KeyChord:
    """A key plus the set of modifiers held with it."""
    key: str
    modifiers: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def parse(cls, text: str) -> "KeyChord":
        """Parse ``"ctrl+shift+h"`` style chords (case-insensitive)."""
        if text.strip() == "+":
            return cls(key="+")
        parts = [_normalize(p) for p in text.split("+") if p.strip()]
        if not parts:
            raise ValueError(f"Empty key chord: {text!r}")
        modifiers = frozenset(p for p in parts[:-1])
        unknown = modifiers - MODIFIERS
        if unknown:
            raise ValueError(f"Unknown modifiers in {text!r}: {sorted(unknown)}")
        return cls(key=parts[-1], modifiers=modifiers)

    def __str__(self) -> str:
        mod_str = "+".join(sorted(self.modifiers))
        return f"{mod_str}+{self.key}" if mod_str else self.key


@dataclass(frozen=True)
class KeyEvent:
    """A key press as delivered by the host UI."""
    key: str
    ctrl: bool = False
    shift: bool = False
    alt: bool = False
    meta: bool = False

    @property
    def chord(self) -> KeyChord:
        modifiers = {name for name in ("ctrl", "shift", "alt", "meta") if getattr(self, name)}
        return KeyChord(key=_normalize(self.key), modifiers=frozenset(modifiers))

    @classmethod
    def from_chord(cls, text: str) -> "KeyEvent":
        chord = KeyChord.parse(text)
        return cls(
            key=chord.key,
            ctrl="ctrl" in chord.modifiers,
            shift="shift" in chord.modifiers,
            alt="alt" in chord.modifiers,
            meta="meta" in chord.modifiers,
        )


class HelpKeyMap:
    """Chord -> global help action lookup."""

    def __init__(self, bindings: Optional[KeyBindings] = None):
        bindings = bindings or KeyBindings()
        self.show_chord = KeyChord.parse(bindings.show_help)
        self._actions: Dict[KeyChord, HelpAction] = {
            self.show_chord: HelpAction.SHOW_HELP,
            KeyChord.parse(bindings.toggle_help): HelpAction.TOGGLE_HELP,
            KeyChord.parse(bindings.hide_help): HelpAction.HIDE_HELP,
        }
        if len(self._actions) != len(HelpAction):
            raise ValueError("Global help actions must use distinct key chords")

    def resolve(self, event: KeyEvent) -> Optional[HelpAction]:
        return self._actions.get(event.chord)

    def is_show_help(self, event: KeyEvent) -> bool:
        return event.chord == self.show_chord


class TutorialKeyMap:
    """Chord -> tutorial navigation action lookup."""

    def __init__(self, bindings: Optional[KeyBindings] = None):
        bindings = bindings or KeyBindings()
        self._actions: Dict[KeyChord, TutorialAction] = {
            KeyChord.parse(bindings.tutorial_next): TutorialAction.NEXT,
            KeyChord.parse(bindings.tutorial_previous): TutorialAction.PREVIOUS,
            KeyChord.parse(bindings.tutorial_play_pause): TutorialAction.PLAY_PAUSE,
            KeyChord.parse(bindings.tutorial_exit): TutorialAction.EXIT,
        }

    def resolve(self, event: KeyEvent) -> Optional[TutorialAction]:
        return self._actions.get(event.chord)


__all__ = [
    "HelpAction",
    "TutorialAction",
    "KeyChord",
    "KeyEvent",
    "HelpKeyMap",
    "TutorialKeyMap",
]
