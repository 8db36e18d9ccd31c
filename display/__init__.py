"""Display layer — consumers of Scores snapshots.

Modules:
    notation    Note naming schemes (English, Romance).
    terminal    ANSI-coloured guitar fretboard rendered in the terminal.
"""
