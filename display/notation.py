"""
display/notation.py — Note naming schemes for displays.

Each name is padded to three characters so that fretboard cells line up.
"""

from __future__ import annotations

from enum import Enum

NOTE_NAMES_ENGLISH: tuple[str, ...] = (
    " C ", " C#", " D ", " D#", " E ", " F ", " F#", " G ", " G#", " A ", " A#", " B ",
)
NOTE_NAMES_ROMANCE: tuple[str, ...] = (
    "Do ", "Do#", "Ré ", "Ré#", "Mi ", "Fa ", "Fa#", "Sol", "So#", "La ", "La#", "Si ",
)


class Notation(Enum):
    """Naming convention for the twelve pitch classes."""

    ENGLISH = "english"
    ROMANCE = "romance"

    def names(self) -> tuple[str, ...]:
        if self is Notation.ROMANCE:
            return NOTE_NAMES_ROMANCE
        return NOTE_NAMES_ENGLISH

    def name_of(self, index: int) -> str:
        """Three-character cell name of the note at ordinal ``index``."""
        return self.names()[int(index) % 12]

    def label(self, index: int) -> str:
        """Compact name with octave number, e.g. 'A4' or 'La4'."""
        return f"{self.name_of(index).strip()}{int(index) // 12 + 1}"


def name(index: int, notation: Notation = Notation.ENGLISH) -> str:
    """Pure lookup of the cell name for note ordinal ``index``."""
    return notation.name_of(index)
