"""Playing tendencies - What a player reaches for, and what they avoid.

Aggregates an accumulator snapshot into histograms:
- Key (pitch class) usage
- Chord quality usage
- Tempo buckets (note counts per 10 BPM range)
- Melodic intervals between consecutive notes
- Rhythm profile (swing, subdivisions, density)

Avoidance is only reported once enough material has been seen.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import TYPE_CHECKING, Any, Dict, List, Tuple

import numpy as np

from ..analysis.rhythm import note_iois, swing_ratio
from ..core import PITCH_NAMES
from ..core.constants import (
    AVOIDANCE_KEY_THRESHOLD,
    MAX_TRACKED_INTERVAL,
    MIN_CHORDS_FOR_TENDENCIES,
    MIN_NOTES_FOR_TENDENCIES,
    SUBDIVISION_MIN_SHARE,
    SUBDIVISION_TOLERANCE,
    TEMPO_BUCKET_MAX,
    TEMPO_BUCKET_MIN,
    TEMPO_BUCKET_SIZE,
)
from .chords import ALL_CHORD_QUALITIES, ChordQuality

if TYPE_CHECKING:
    from ..session.accumulator import AnalysisAccumulator

logger = logging.getLogger(__name__)

TEMPO_BUCKET_COUNT = (TEMPO_BUCKET_MAX - TEMPO_BUCKET_MIN) // TEMPO_BUCKET_SIZE

# Subdivision name -> fraction of the median IOI
SUBDIVISIONS = (
    ("quarter", 1),
    ("eighth", 2),
    ("triplet", 3),
)


@dataclass(frozen=True)
class RhythmProfile:
    """Rhythmic habits over the buffered notes."""

    swing_ratio: float = 0.0
    common_subdivisions: Tuple[str, ...] = ()
    average_density: float = 0.0  # Notes per second

    def to_dict(self) -> Dict[str, Any]:
        return {
            "swing_ratio": self.swing_ratio,
            "common_subdivisions": list(self.common_subdivisions),
            "average_density": self.average_density,
        }


@dataclass(frozen=True)
class PlayingTendencies:
    """Usage histograms for one session."""

    key_distribution: Dict[str, int]  # Pitch class name -> note count
    chord_type_distribution: Dict[str, int]  # Chord quality value -> chord count
    tempo_histogram: Tuple[int, ...]  # Note counts per TEMPO_BUCKET_SIZE BPM bucket
    interval_distribution: Dict[int, int]  # Semitones -> count
    rhythm_profile: RhythmProfile = field(default_factory=RhythmProfile)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key_distribution": dict(self.key_distribution),
            "chord_type_distribution": dict(self.chord_type_distribution),
            "tempo_histogram": list(self.tempo_histogram),
            "interval_distribution": dict(self.interval_distribution),
            "rhythm_profile": self.rhythm_profile.to_dict(),
        }


@dataclass(frozen=True)
class TempoRange:
    """A BPM range [min_bpm, max_bpm)."""

    min_bpm: int
    max_bpm: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AvoidancePatterns:
    """Material the player consistently leaves out."""

    avoided_keys: Tuple[str, ...] = ()
    avoided_chord_types: Tuple[str, ...] = ()
    avoided_tempo_ranges: Tuple[TempoRange, ...] = ()
    avoided_intervals: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.avoided_keys
            or self.avoided_chord_types
            or self.avoided_tempo_ranges
            or self.avoided_intervals
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avoided_keys": list(self.avoided_keys),
            "avoided_chord_types": list(self.avoided_chord_types),
            "avoided_tempo_ranges": [r.to_dict() for r in self.avoided_tempo_ranges],
            "avoided_intervals": list(self.avoided_intervals),
        }


class TendencyTracker:
    """Compute playing tendencies and avoidance patterns.

    Stateless: every call works on an immutable accumulator snapshot.
    """

    def __init__(
        self,
        min_notes: int = MIN_NOTES_FOR_TENDENCIES,
        min_chords: int = MIN_CHORDS_FOR_TENDENCIES,
        key_threshold: float = AVOIDANCE_KEY_THRESHOLD,
    ):
        """
        Initialize TendencyTracker.

        Args:
            min_notes: Total notes required before avoidance is reported
            min_chords: Total chords required before avoidance is reported
            key_threshold: Usage share below which a pitch class is avoided
        """
        self.min_notes = min_notes
        self.min_chords = min_chords
        self.key_threshold = key_threshold

    def track(self, accumulator: "AnalysisAccumulator") -> PlayingTendencies:
        """Build all usage histograms from a snapshot."""
        return PlayingTendencies(
            key_distribution=self._key_distribution(accumulator),
            chord_type_distribution=self._chord_type_distribution(accumulator),
            tempo_histogram=self._tempo_histogram(accumulator),
            interval_distribution=self._interval_distribution(accumulator),
            rhythm_profile=self._rhythm_profile(accumulator),
        )

    def _key_distribution(self, accumulator: "AnalysisAccumulator") -> Dict[str, int]:
        distribution = {name: 0 for name in PITCH_NAMES}
        for note in accumulator.notes:
            distribution[PITCH_NAMES[note.pitch_class]] += 1
        return distribution

    def _chord_type_distribution(self, accumulator: "AnalysisAccumulator") -> Dict[str, int]:
        distribution = {quality.value: 0 for quality in ALL_CHORD_QUALITIES}
        for chord in accumulator.chords:
            distribution[ChordQuality(chord.quality).value] += 1
        return distribution

    def _tempo_histogram(self, accumulator: "AnalysisAccumulator") -> Tuple[int, ...]:
        histogram = [0] * TEMPO_BUCKET_COUNT
        for segment in accumulator.tempo_segments:
            index = int(np.floor((segment.bpm - TEMPO_BUCKET_MIN) / TEMPO_BUCKET_SIZE))
            if 0 <= index < TEMPO_BUCKET_COUNT:
                histogram[index] += segment.note_count
        return tuple(histogram)

    def _interval_distribution(self, accumulator: "AnalysisAccumulator") -> Dict[int, int]:
        distribution: Dict[int, int] = {}
        notes = accumulator.notes
        for previous, current in zip(notes, notes[1:]):
            interval = abs(current.midi_number - previous.midi_number)
            if interval <= MAX_TRACKED_INTERVAL:
                distribution[interval] = distribution.get(interval, 0) + 1
        return distribution

    def _rhythm_profile(self, accumulator: "AnalysisAccumulator") -> RhythmProfile:
        if len(accumulator.notes) < 4:
            return RhythmProfile()

        iois = note_iois(accumulator.notes)
        if len(iois) < 2:
            return RhythmProfile()

        duration = accumulator.last_timestamp - accumulator.start_timestamp
        density = len(accumulator.notes) / duration * 1000 if duration > 0 else 0.0

        return RhythmProfile(
            swing_ratio=swing_ratio(iois),
            common_subdivisions=self._common_subdivisions(iois),
            average_density=density,
        )

    def _common_subdivisions(self, iois: List[float]) -> Tuple[str, ...]:
        """
        Detect subdivisions relative to the median IOI (taken as the quarter).

        A subdivision is common when at least SUBDIVISION_MIN_SHARE of the
        IOIs fall within SUBDIVISION_TOLERANCE of it.
        """
        median = float(np.median(iois))
        if median <= 0:
            return ()

        common = []
        for name, divisor in SUBDIVISIONS:
            target = median / divisor
            hits = sum(1 for ioi in iois if abs(ioi - target) / target < SUBDIVISION_TOLERANCE)
            if hits >= len(iois) * SUBDIVISION_MIN_SHARE:
                common.append(name)
        return tuple(common)

    def detect_avoidance(
        self,
        tendencies: PlayingTendencies,
        accumulator: "AnalysisAccumulator",
    ) -> AvoidancePatterns:
        """
        Flag under-used keys, chord qualities, tempo ranges and intervals.

        Returns empty patterns until the session has enough notes and chords.
        """
        if (
            accumulator.total_note_count < self.min_notes
            or accumulator.total_chord_count < self.min_chords
        ):
            return AvoidancePatterns()

        patterns = AvoidancePatterns(
            avoided_keys=self._avoided_keys(tendencies),
            avoided_chord_types=tuple(
                quality for quality, count in tendencies.chord_type_distribution.items() if count == 0
            ),
            avoided_tempo_ranges=self._avoided_tempo_ranges(tendencies),
            avoided_intervals=self._avoided_intervals(tendencies),
        )
        logger.debug("Avoidance patterns: %s", patterns.to_dict())
        return patterns

    def _avoided_keys(self, tendencies: PlayingTendencies) -> Tuple[str, ...]:
        total = sum(tendencies.key_distribution.values())
        if total == 0:
            return ()
        return tuple(
            key for key, count in tendencies.key_distribution.items()
            if count / total < self.key_threshold
        )

    def _avoided_tempo_ranges(self, tendencies: PlayingTendencies) -> Tuple[TempoRange, ...]:
        """Empty tempo buckets next to at least one played bucket."""
        histogram = tendencies.tempo_histogram
        gaps = []
        for i, count in enumerate(histogram):
            if count != 0:
                continue
            previous_active = i > 0 and histogram[i - 1] > 0
            next_active = i < len(histogram) - 1 and histogram[i + 1] > 0
            if previous_active or next_active:
                gaps.append(TempoRange(
                    min_bpm=TEMPO_BUCKET_MIN + i * TEMPO_BUCKET_SIZE,
                    max_bpm=TEMPO_BUCKET_MIN + (i + 1) * TEMPO_BUCKET_SIZE,
                ))
        return tuple(gaps)

    def _avoided_intervals(self, tendencies: PlayingTendencies) -> Tuple[int, ...]:
        """Intervals within an octave (1-12) that were never played."""
        if sum(tendencies.interval_distribution.values()) == 0:
            return ()
        return tuple(
            interval for interval in range(1, 13)
            if tendencies.interval_distribution.get(interval, 0) == 0
        )


_tracker = TendencyTracker()


def track_tendencies(accumulator: "AnalysisAccumulator") -> PlayingTendencies:
    """Compute playing tendencies from an accumulator snapshot."""
    return _tracker.track(accumulator)


def detect_avoidance(
    tendencies: PlayingTendencies,
    accumulator: "AnalysisAccumulator",
) -> AvoidancePatterns:
    """Detect avoidance patterns (empty below the minimum note/chord totals)."""
    return _tracker.detect_avoidance(tendencies, accumulator)
