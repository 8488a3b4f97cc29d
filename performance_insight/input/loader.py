"""MIDI file loading - Turn a Standard MIDI File into a note event stream."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pretty_midi

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoteEvent:
    """A single note-on or note-off event in milliseconds."""

    kind: str  # "on" or "off"
    pitch: int
    velocity: int
    timestamp: float

    @property
    def is_note_on(self) -> bool:
        return self.kind == "on"


class MidiLoader:
    """Handles MIDI file loading and event extraction."""

    SUPPORTED_FORMATS = {".mid", ".midi"}

    def __init__(
        self,
        instrument: Optional[int] = None,
        include_drums: bool = False,
    ):
        """
        Initialize MidiLoader.

        Args:
            instrument: Only use the instrument (track) at this index
            include_drums: Keep drum tracks (unpitched) if True
        """
        self.instrument = instrument
        self.include_drums = include_drums

    def load(self, path: str) -> List[NoteEvent]:
        """
        Load a MIDI file as a time-ordered list of note events.

        Args:
            path: Path to MIDI file

        Returns:
            Note-on and note-off events sorted by timestamp (ms). At equal
            timestamps note-offs come first.

        Raises:
            ValueError: If file format not supported, unreadable or instrument missing
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"MIDI file not found: {path}")

        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {self.SUPPORTED_FORMATS}"
            )

        try:
            midi = pretty_midi.PrettyMIDI(str(path))
        except Exception as e:
            raise ValueError(f"Failed to parse MIDI file '{path.name}': {e}") from e
        return self.events_from_midi(midi)

    def events_from_midi(self, midi: pretty_midi.PrettyMIDI) -> List[NoteEvent]:
        """Extract note events from an in-memory PrettyMIDI object."""
        instruments = midi.instruments
        if self.instrument is not None:
            if not 0 <= self.instrument < len(instruments):
                raise ValueError(
                    f"Instrument {self.instrument} not found "
                    f"(file has {len(instruments)})"
                )
            instruments = [instruments[self.instrument]]

        events = []
        for instrument in instruments:
            if instrument.is_drum and not self.include_drums:
                logger.debug("Skipping drum track %r", instrument.name)
                continue
            for note in instrument.notes:
                events.append(NoteEvent("on", note.pitch, note.velocity, note.start * 1000.0))
                events.append(NoteEvent("off", note.pitch, 0, note.end * 1000.0))

        events.sort(key=lambda e: (e.timestamp, e.is_note_on, e.pitch))
        logger.info("Loaded %d note events from %d instrument(s)", len(events), len(instruments))
        return events
