"""DetectedNote - the fundamental unit of a live performance stream."""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from .constants import PITCH_NAMES


@dataclass(frozen=True)
class DetectedNote:
    """A single note-on event mapped to musical identity."""

    name: str  # Pitch class name, sharp spelling (e.g., "C#")
    octave: int  # Scientific octave, MIDI 60 = C4
    midi_number: int  # MIDI pitch (0-127)
    velocity: int  # MIDI velocity (0-127)
    timestamp: float  # Note-on time in milliseconds

    @property
    def pitch_class(self) -> int:
        """Get pitch class (0-11, where 0=C)."""
        return self.midi_number % 12

    @property
    def display_name(self) -> str:
        """Get note name with octave (e.g., 'C4', 'A#3')."""
        return f"{self.name}{self.octave}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def map_note(midi_number: int, velocity: int, timestamp: float) -> DetectedNote:
    """
    Map a MIDI note-on to a DetectedNote.

    Uses sharps for enharmonic spelling (C#, not Db) and the
    standard octave mapping where MIDI 60 is C4.
    """
    return DetectedNote(
        name=PITCH_NAMES[midi_number % 12],
        octave=(midi_number // 12) - 1,
        midi_number=midi_number,
        velocity=velocity,
        timestamp=timestamp,
    )


def note_display_name(midi_number: int) -> str:
    """Get the display name for a MIDI pitch (e.g., 60 -> 'C4')."""
    octave = (midi_number // 12) - 1
    return f"{PITCH_NAMES[midi_number % 12]}{octave}"
