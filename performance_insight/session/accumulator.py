"""Analysis accumulator - Bounded session memory for periodic analysis."""

from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from ..analysis.tempo import TempoSegment
from ..core import DetectedNote
from ..core.constants import ACCUMULATOR_MAX_CHORDS, ACCUMULATOR_MAX_NOTES
from ..inference.chords import DetectedChord
from ..inference.key import KeySegment


@dataclass(frozen=True)
class AnalysisAccumulator:
    """Immutable snapshot of recent session material.

    `notes` and `chords` hold only the most recent buffered items while
    the totals count everything seen this session.
    """

    notes: Tuple[DetectedNote, ...] = ()
    chords: Tuple[DetectedChord, ...] = ()
    total_note_count: int = 0
    total_chord_count: int = 0
    tempo_segments: Tuple[TempoSegment, ...] = ()
    key_segments: Tuple[KeySegment, ...] = ()
    start_timestamp: float = 0.0
    last_timestamp: float = 0.0

    @property
    def duration_ms(self) -> float:
        return self.last_timestamp - self.start_timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "notes": [n.to_dict() for n in self.notes],
            "chords": [c.to_dict() for c in self.chords],
            "total_note_count": self.total_note_count,
            "total_chord_count": self.total_chord_count,
            "tempo_segments": [s.to_dict() for s in self.tempo_segments],
            "key_segments": [s.to_dict() for s in self.key_segments],
            "start_timestamp": self.start_timestamp,
            "last_timestamp": self.last_timestamp,
        }


class RollingAccumulator:
    """Collect notes and chords with FIFO eviction at capacity."""

    def __init__(
        self,
        max_notes: int = ACCUMULATOR_MAX_NOTES,
        max_chords: int = ACCUMULATOR_MAX_CHORDS,
    ):
        """
        Initialize RollingAccumulator.

        Args:
            max_notes: Notes kept before the oldest is evicted
            max_chords: Chords kept before the oldest is evicted
        """
        self.max_notes = max_notes
        self.max_chords = max_chords
        self.reset()

    def reset(self) -> None:
        self._notes: deque = deque(maxlen=self.max_notes)
        self._chords: deque = deque(maxlen=self.max_chords)
        self._total_notes = 0
        self._total_chords = 0
        self._tempo_segments: Tuple[TempoSegment, ...] = ()
        self._key_segments: Tuple[KeySegment, ...] = ()
        self._start: Optional[float] = None
        self._last: Optional[float] = None

    def add_note(self, note: DetectedNote) -> None:
        self._notes.append(note)
        self._total_notes += 1
        if self._start is None:
            self._start = note.timestamp
        self._last = note.timestamp

    def add_chord(self, chord: DetectedChord) -> None:
        self._chords.append(chord)
        self._total_chords += 1

    def set_tempo_segments(self, segments: Sequence[TempoSegment]) -> None:
        self._tempo_segments = tuple(segments)

    def set_key_segments(self, segments: Sequence[KeySegment]) -> None:
        self._key_segments = tuple(segments)

    @property
    def total_note_count(self) -> int:
        return self._total_notes

    @property
    def total_chord_count(self) -> int:
        return self._total_chords

    def snapshot(self) -> AnalysisAccumulator:
        """Copy the current contents into an immutable AnalysisAccumulator."""
        return AnalysisAccumulator(
            notes=tuple(self._notes),
            chords=tuple(self._chords),
            total_note_count=self._total_notes,
            total_chord_count=self._total_chords,
            tempo_segments=self._tempo_segments,
            key_segments=self._key_segments,
            start_timestamp=self._start if self._start is not None else 0.0,
            last_timestamp=self._last if self._last is not None else 0.0,
        )
