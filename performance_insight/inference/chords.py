"""Chord analysis - Identify chords from simultaneity clusters.

Implements exact template chord identification with:
- Interval-set template matching (7th chords before triads)
- Root-position preference via the lowest sounding note
- Immutable chord progressions that grow one chord at a time
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..core import DetectedNote, PITCH_NAMES
from ..core.constants import MIN_NOTES_FOR_CHORD

logger = logging.getLogger(__name__)


class ChordQuality(str, Enum):
    """Chord qualities recognized by the analyzer."""
    MAJOR = "Major"
    MINOR = "Minor"
    DOMINANT7 = "Dominant7"
    MINOR7 = "Minor7"
    MAJOR7 = "Major7"
    SUS2 = "Sus2"
    SUS4 = "Sus4"
    DIMINISHED = "Diminished"
    AUGMENTED = "Augmented"

    @property
    def label(self) -> str:
        """Short display label (e.g., 'maj', 'm7')."""
        return QUALITY_LABELS[self]


QUALITY_LABELS = {
    ChordQuality.MAJOR: "maj",
    ChordQuality.MINOR: "m",
    ChordQuality.DOMINANT7: "7",
    ChordQuality.MINOR7: "m7",
    ChordQuality.MAJOR7: "maj7",
    ChordQuality.SUS2: "sus2",
    ChordQuality.SUS4: "sus4",
    ChordQuality.DIMINISHED: "dim",
    ChordQuality.AUGMENTED: "aug",
}

ALL_CHORD_QUALITIES: Tuple[ChordQuality, ...] = tuple(ChordQuality)


@dataclass(frozen=True)
class DetectedChord:
    """Represents a chord identified from simultaneous notes."""

    root: str  # Root note (e.g., "C", "F#")
    quality: ChordQuality
    notes: Tuple[DetectedNote, ...]  # Constituents in arrival order
    timestamp: float  # Earliest constituent timestamp (ms)

    @property
    def root_pitch_class(self) -> int:
        """Get root as pitch class (0-11), -1 for unknown spellings."""
        return PITCH_NAMES.index(self.root) if self.root in PITCH_NAMES else -1

    @property
    def pitch_classes(self) -> frozenset:
        """Get pitch classes in the chord."""
        return frozenset(n.pitch_class for n in self.notes)

    @property
    def display_name(self) -> str:
        """Get chord label (e.g., 'Cmaj', 'Am', 'G7')."""
        return f"{self.root}{ChordQuality(self.quality).label}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": self.root,
            "quality": ChordQuality(self.quality).value,
            "notes": [n.to_dict() for n in self.notes],
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ChordProgression:
    """An ordered run of chords within one phrase."""

    chords: Tuple[DetectedChord, ...]
    start_timestamp: float
    end_timestamp: float

    @property
    def symbols(self) -> List[str]:
        """Get list of chord labels."""
        return [c.display_name for c in self.chords]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chords": [c.to_dict() for c in self.chords],
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
        }


class ChordAnalyzer:
    """Identify chords from clusters of simultaneous notes.

    A cluster is recognized only when its pitch-class set matches a
    template exactly; there is no partial or fuzzy matching.
    """

    # Chord templates (sorted intervals from root in semitones).
    # First match wins, so the more specific 7th chords come first.
    CHORD_TEMPLATES: Tuple[Tuple[ChordQuality, Tuple[int, ...]], ...] = (
        # Seventh chords
        (ChordQuality.MAJOR7, (0, 4, 7, 11)),
        (ChordQuality.DOMINANT7, (0, 4, 7, 10)),
        (ChordQuality.MINOR7, (0, 3, 7, 10)),
        # Triads
        (ChordQuality.MAJOR, (0, 4, 7)),
        (ChordQuality.MINOR, (0, 3, 7)),
        (ChordQuality.DIMINISHED, (0, 3, 6)),
        (ChordQuality.AUGMENTED, (0, 4, 8)),
        (ChordQuality.SUS2, (0, 2, 7)),
        (ChordQuality.SUS4, (0, 5, 7)),
    )

    def __init__(self, min_pitch_classes: int = MIN_NOTES_FOR_CHORD):
        """
        Initialize ChordAnalyzer.

        Args:
            min_pitch_classes: Minimum distinct pitch classes to form a chord
        """
        self.min_pitch_classes = min_pitch_classes

    def analyze(self, notes: Sequence[DetectedNote]) -> Optional[DetectedChord]:
        """
        Identify the chord formed by a simultaneity cluster.

        Args:
            notes: Notes that arrived within one simultaneity window

        Returns:
            DetectedChord, or None if no template matches
        """
        if len(notes) < self.min_pitch_classes:
            return None

        pitch_classes = self.notes_to_pitch_classes(notes)
        if len(pitch_classes) < self.min_pitch_classes:
            return None

        bass_pc = min(notes, key=lambda n: n.midi_number).pitch_class
        candidate_roots = [bass_pc] + [pc for pc in pitch_classes if pc != bass_pc]

        fallback: Optional[Tuple[int, ChordQuality]] = None
        for root_pc in candidate_roots:
            quality = self._match_template(pitch_classes, root_pc)
            if quality is None:
                continue
            if root_pc == bass_pc:
                # Root position, nothing can beat it
                return self._build_chord(root_pc, quality, notes)
            if fallback is None:
                fallback = (root_pc, quality)

        if fallback is not None:
            return self._build_chord(fallback[0], fallback[1], notes)

        logger.debug(
            "No chord template for pitch classes %s",
            [PITCH_NAMES[pc] for pc in pitch_classes],
        )
        return None

    def _match_template(
        self,
        pitch_classes: List[int],
        root_pc: int,
    ) -> Optional[ChordQuality]:
        """Return the first template quality matching the intervals from root_pc."""
        intervals = tuple(sorted((pc - root_pc) % 12 for pc in pitch_classes))
        for quality, template in self.CHORD_TEMPLATES:
            if intervals == template:
                return quality
        return None

    def _build_chord(
        self,
        root_pc: int,
        quality: ChordQuality,
        notes: Sequence[DetectedNote],
    ) -> DetectedChord:
        return DetectedChord(
            root=PITCH_NAMES[root_pc],
            quality=quality,
            notes=tuple(notes),
            timestamp=min(n.timestamp for n in notes),
        )

    def notes_to_pitch_classes(self, notes: Sequence[DetectedNote]) -> List[int]:
        """Convert notes to unique pitch classes, preserving first-seen order."""
        pitch_classes: List[int] = []
        for note in notes:
            if note.pitch_class not in pitch_classes:
                pitch_classes.append(note.pitch_class)
        return pitch_classes

    def update_progression(
        self,
        chord: DetectedChord,
        progression: Optional[ChordProgression],
    ) -> ChordProgression:
        """
        Append a chord to a progression without mutating it.

        Starts a new progression when none is given.
        """
        if progression is None:
            return ChordProgression(
                chords=(chord,),
                start_timestamp=chord.timestamp,
                end_timestamp=chord.timestamp,
            )

        return ChordProgression(
            chords=progression.chords + (chord,),
            start_timestamp=progression.start_timestamp,
            end_timestamp=chord.timestamp,
        )


_analyzer = ChordAnalyzer()


def analyze_chord(notes: Sequence[DetectedNote]) -> Optional[DetectedChord]:
    """Identify the chord formed by a cluster of simultaneous notes."""
    return _analyzer.analyze(notes)


def update_progression(
    chord: DetectedChord,
    progression: Optional[ChordProgression],
) -> ChordProgression:
    """Append a chord to a progression, creating one if needed."""
    return _analyzer.update_progression(chord, progression)


def chord_display_name(chord: DetectedChord) -> str:
    """Get the display label for a chord (e.g., 'Cmaj7', 'Am', 'Gsus4')."""
    return chord.display_name
