"""
display/terminal.py — Guitar fretboard coloured by dissonance, in the terminal.

Each cell is a note name on a 24-bit ANSI background: green for notes that
would blend with what is being played, red for notes that would clash.
Only the newest snapshot is drawn; a slow terminal skips frames instead of
falling behind.
"""

from __future__ import annotations

import logging
import queue
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TextIO

from core.mapping import map_interval
from core.spectrum.notes import Note
from display.notation import Notation
from ingestion.pipeline import latest_snapshot

logger = logging.getLogger(__name__)

GUITAR_STRING_LENGTH = 44
"""Cells per string: the open string plus 43 frets."""

GUITAR_STRINGS: tuple[Note, ...] = (Note.E2, Note.A2, Note.D3, Note.G3, Note.B3, Note.E4)
"""Standard tuning, low string first."""

_RESET = "\x1b[0;0m"


@dataclass(frozen=True)
class DisplayOptions:
    """Terminal display settings.

    Attributes:
        notation:   Note naming scheme.
        clear_term: Redraw in place (cursor up) instead of scrolling.
    """

    notation: Notation = Notation.ENGLISH
    clear_term: bool = True


def _cell(name: str, score: float) -> str:
    gradient = map_interval(score, (0.0, 1.0), (0, 255), clamped=True, cast=int)
    return f"\x1b[30;48;2;{gradient};{255 - gradient};{gradient // 4}m{name}"


def render_guitar(
    note_scores: Sequence[float],
    options: DisplayOptions = DisplayOptions(),
    *,
    redraw: bool = False,
) -> str:
    """Render one frame of the fretboard.

    Args:
        note_scores: Per-note scores in [0, 1], indexed by note ordinal.
        options:     Notation and redraw settings.
        redraw:      Prefix a cursor-up sequence to overwrite the previous frame
                     (only when ``options.clear_term`` is set).

    Returns:
        The frame as a string, ending with a newline.
    """
    lines: list[str] = []
    if redraw and options.clear_term:
        lines.append(f"\x1b[{len(GUITAR_STRINGS) + 1}A")

    header = " 0 |" + "".join(f"{fret:^3}" for fret in range(1, GUITAR_STRING_LENGTH))
    lines.append(header + "\n")

    for string in reversed(GUITAR_STRINGS):
        cells: list[str] = []
        for offset, note in enumerate(string.iter_from()):
            if offset >= GUITAR_STRING_LENGTH:
                break
            cells.append(_cell(options.notation.name_of(note), float(note_scores[note])))
            if note == string:
                cells.append(f"{_RESET}|")
        lines.append("".join(cells) + _RESET + "\n")

    return "".join(lines)


def run_display(
    snapshots: queue.Queue,
    options: DisplayOptions = DisplayOptions(),
    stream: TextIO = sys.stdout,
) -> int:
    """Draw the newest snapshot until the analysis side closes the queue.

    Returns:
        Number of frames drawn.
    """
    drawn = 0
    while (scores := latest_snapshot(snapshots)) is not None:
        stream.write(render_guitar(scores.note_scores, options, redraw=drawn > 0))
        stream.flush()
        drawn += 1
    logger.info("Display closed after %d frames", drawn)
    return drawn
