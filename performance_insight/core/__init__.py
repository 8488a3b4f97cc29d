"""Core types and constants for Performance Insight."""

from .note import DetectedNote, map_note, note_display_name
from .constants import (
    PITCH_NAMES,
    MIDI_MIN,
    MIDI_MAX,
    SIMULTANEITY_WINDOW_MS,
    SILENCE_THRESHOLD_MS,
)

__all__ = [
    "DetectedNote",
    "map_note",
    "note_display_name",
    "PITCH_NAMES",
    "MIDI_MIN",
    "MIDI_MAX",
    "SIMULTANEITY_WINDOW_MS",
    "SILENCE_THRESHOLD_MS",
]
