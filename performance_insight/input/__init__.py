"""Input layer - Note event sources."""

from .loader import MidiLoader, NoteEvent

__all__ = ["MidiLoader", "NoteEvent"]
