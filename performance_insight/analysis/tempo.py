"""Tempo and timing analysis over a live stream of note-on timestamps.

Tempo is estimated from inter-onset intervals (IOIs) with median
filtering, rejected when the IOIs are too irregular (rubato), and then
tracked against a beat grid. Tempo shifts split the session into
contiguous TempoSegments.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, asdict
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

from ..core.constants import (
    CONSISTENT_IOI_TOLERANCE,
    MAX_BPM,
    MAX_IOI_MS,
    MAX_RUBATO_RATIO,
    MIN_BEATS_FOR_SHIFT,
    MIN_BPM,
    MIN_IOI_MS,
    MIN_NOTES_FOR_TEMPO,
    ON_BEAT_TOLERANCE_MS,
    TEMPO_SHIFT_THRESHOLD,
    TIMING_ROLLING_WINDOW,
)

logger = logging.getLogger(__name__)

BeatGrid = Callable[[int], float]


@dataclass(frozen=True)
class TempoEstimate:
    """Result of tempo detection."""

    bpm: float
    confidence: float  # Share of IOIs within tolerance of the median


@dataclass(frozen=True)
class TimingEvent:
    """A note snapped to the beat grid."""

    note_timestamp: float
    expected_beat_timestamp: float
    deviation_ms: float  # Negative = early, positive = late
    beat_index: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TempoSegment:
    """A contiguous stretch of playing at one tempo."""

    bpm: float
    start_timestamp: float
    end_timestamp: float
    note_count: int

    @property
    def duration_ms(self) -> float:
        return self.end_timestamp - self.start_timestamp

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_intervals(timestamps: Sequence[float]) -> List[float]:
    """Positive gaps between consecutive timestamps."""
    intervals = []
    for previous, current in zip(timestamps, timestamps[1:]):
        interval = current - previous
        if interval > 0:
            intervals.append(interval)
    return intervals


def filter_ioi(intervals: Sequence[float]) -> List[float]:
    """Keep IOIs within the playable tempo range."""
    return [ioi for ioi in intervals if MIN_IOI_MS <= ioi <= MAX_IOI_MS]


def consistency(intervals: Sequence[float], median: float) -> float:
    """Share of intervals within CONSISTENT_IOI_TOLERANCE of the median."""
    if not intervals or median <= 0:
        return 0.0
    tolerance = median * CONSISTENT_IOI_TOLERANCE
    consistent = sum(1 for ioi in intervals if abs(ioi - median) <= tolerance)
    return consistent / len(intervals)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +infinity."""
    return int(math.floor(value + 0.5))


def detect_tempo(
    timestamps: Sequence[float],
    intervals: Optional[Sequence[float]] = None,
) -> Optional[TempoEstimate]:
    """
    Detect tempo from note-on timestamps using median IOI.

    Args:
        timestamps: Note-on timestamps in milliseconds
        intervals: Pre-computed intervals (computed from timestamps if None)

    Returns:
        TempoEstimate, or None if there is too little or too irregular data
    """
    if len(timestamps) < MIN_NOTES_FOR_TEMPO:
        return None

    raw = compute_intervals(timestamps) if intervals is None else intervals
    iois = filter_ioi(raw)
    if len(iois) < MIN_NOTES_FOR_TEMPO - 1:
        return None

    median = float(np.median(iois))
    if median <= 0:
        return None

    # Reject rubato / freeform playing
    mad = float(np.median(np.abs(np.asarray(iois) - median)))
    if mad / median > MAX_RUBATO_RATIO:
        return None

    bpm = 60_000 / median
    if bpm < MIN_BPM or bpm > MAX_BPM:
        return None

    return TempoEstimate(bpm=round(bpm, 1), confidence=consistency(iois, median))


def build_beat_grid(start_time: float, bpm: float) -> BeatGrid:
    """Return a function mapping beat index to expected timestamp."""
    beat_interval_ms = 60_000 / bpm

    def grid(beat_index: int) -> float:
        return start_time + beat_index * beat_interval_ms

    return grid


def measure_deviation(
    note_timestamp: float,
    grid: BeatGrid,
    bpm: float,
    grid_start_time: float,
) -> TimingEvent:
    """
    Snap a note to its nearest beat and compute signed deviation.

    Negative deviation means early, positive means late.
    """
    beat_interval_ms = 60_000 / bpm
    nearest_index = round_half_up((note_timestamp - grid_start_time) / beat_interval_ms)
    expected = grid(nearest_index)

    return TimingEvent(
        note_timestamp=note_timestamp,
        expected_beat_timestamp=expected,
        deviation_ms=note_timestamp - expected,
        beat_index=nearest_index,
    )


def calculate_accuracy(
    deviations: Sequence[TimingEvent],
    tolerance_ms: float = ON_BEAT_TOLERANCE_MS,
) -> int:
    """
    Timing accuracy as a percentage (0-100).

    A deviation exactly at the tolerance counts as on-beat.
    """
    if not deviations:
        return 100

    on_beat = sum(1 for d in deviations if abs(d.deviation_ms) <= tolerance_ms)
    raw = round_half_up(on_beat / len(deviations) * 100)
    return max(0, min(100, raw))


def detect_tempo_shift(
    current_bpm: float,
    recent_intervals: Sequence[float],
) -> Optional[float]:
    """
    Detect a tempo shift over the last MIN_BEATS_FOR_SHIFT intervals.

    Returns:
        The new BPM (rounded to 0.1), or None if the tempo is stable
    """
    if len(recent_intervals) < MIN_BEATS_FOR_SHIFT:
        return None

    recent = filter_ioi(list(recent_intervals)[-MIN_BEATS_FOR_SHIFT:])
    if len(recent) < MIN_BEATS_FOR_SHIFT / 2:
        return None

    median = float(np.median(recent))
    if median <= 0:
        return None

    new_bpm = 60_000 / median
    if new_bpm < MIN_BPM or new_bpm > MAX_BPM:
        return None

    if abs(new_bpm - current_bpm) / current_bpm > TEMPO_SHIFT_THRESHOLD:
        return round(new_bpm, 1)

    return None


class TimingAnalyzer:
    """Track tempo, beat grid and timing deviation for one performance.

    Holds mutable state; one instance per live stream, fed from a
    single sequential path.
    """

    def __init__(self, window: int = TIMING_ROLLING_WINDOW):
        """
        Initialize TimingAnalyzer.

        Args:
            window: Capacity of the timestamp and interval buffers
        """
        self.window = window
        self.reset()

    def reset(self) -> None:
        """Clear all state and return to the no-tempo state."""
        self._timestamps: deque = deque(maxlen=self.window)
        self._intervals: deque = deque(maxlen=self.window)
        self._deviations: deque = deque(maxlen=self.window * 2)
        self._bpm: Optional[float] = None
        self._confidence = 0.0
        self._grid: Optional[BeatGrid] = None
        self._grid_start: Optional[float] = None
        self._history: List[TempoSegment] = []
        self._segment_start: Optional[float] = None
        self._segment_note_count = 0
        self._last_timestamp: Optional[float] = None

    def process_note_on(self, timestamp: float) -> Optional[TimingEvent]:
        """
        Feed one note-on timestamp.

        Returns:
            TimingEvent against the current grid, or None while no tempo
            has been established
        """
        if self._timestamps:
            interval = timestamp - self._timestamps[-1]
            if interval > 0:
                self._intervals.append(interval)
        self._timestamps.append(timestamp)
        self._last_timestamp = timestamp

        if self._bpm is None:
            estimate = detect_tempo(list(self._timestamps), list(self._intervals))
            if estimate is None:
                return None
            self._establish(estimate)
        else:
            self._segment_note_count += 1

        shifted = detect_tempo_shift(self._bpm, self._intervals)
        if shifted is not None:
            self._shift(shifted, timestamp)

        event = measure_deviation(timestamp, self._grid, self._bpm, self._grid_start)
        self._deviations.append(event)
        return event

    def _establish(self, estimate: TempoEstimate) -> None:
        self._bpm = estimate.bpm
        self._confidence = estimate.confidence
        self._grid_start = self._timestamps[0]
        self._grid = build_beat_grid(self._grid_start, self._bpm)
        self._segment_start = self._grid_start
        self._segment_note_count = len(self._timestamps)
        logger.info("Tempo established at %.1f BPM", self._bpm)

    def _shift(self, new_bpm: float, timestamp: float) -> None:
        self._history.append(TempoSegment(
            bpm=self._bpm,
            start_timestamp=self._segment_start,
            end_timestamp=timestamp,
            note_count=self._segment_note_count,
        ))
        logger.info("Tempo shift %.1f -> %.1f BPM at %s ms", self._bpm, new_bpm, timestamp)

        self._bpm = new_bpm
        self._grid_start = timestamp
        self._grid = build_beat_grid(timestamp, new_bpm)
        self._segment_start = timestamp
        self._segment_note_count = 1

        iois = filter_ioi(self._intervals)
        if iois:
            self._confidence = consistency(iois, float(np.median(iois)))

    def get_current_tempo(self) -> Optional[float]:
        return self._bpm

    def get_confidence(self) -> float:
        return self._confidence

    def get_accuracy(self) -> int:
        return calculate_accuracy(self._deviations)

    def get_deviations(self) -> List[TimingEvent]:
        return list(self._deviations)

    def get_tempo_history(self, include_current: bool = False) -> List[TempoSegment]:
        """
        Get finalized tempo segments.

        Args:
            include_current: Also include the open segment, ending at the
                latest note
        """
        history = list(self._history)
        if include_current and self._bpm is not None:
            history.append(TempoSegment(
                bpm=self._bpm,
                start_timestamp=self._segment_start,
                end_timestamp=self._last_timestamp,
                note_count=self._segment_note_count,
            ))
        return history
