"""Analysis pipeline - Drive every analyzer from a stream of note events.

The pipeline is timestamp driven and fully synchronous:
- Note-ons are mapped, timed and classified against the current chord
- Note-ons within the simultaneity window form one cluster (chord candidate)
- A closed cluster updates the progression, the key and the harmonic function
- A long silence discards the current progression
- Genre and tendency analysis run periodically over an accumulator snapshot

One pipeline instance per performance; it is not thread safe.
"""

import logging
from collections import deque
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..analysis.flow import FlowState, detect_flow_state
from ..analysis.tempo import TempoSegment, TimingAnalyzer, TimingEvent
from ..core import DetectedNote, map_note
from ..core.constants import (
    ACCUMULATOR_MAX_CHORDS,
    ACCUMULATOR_MAX_NOTES,
    KEY_DETECTION_CHORD_WINDOW,
    MIN_NOTES_FOR_CHORD,
    MODULATION_CHORD_COUNT,
    PATTERN_ANALYSIS_INTERVAL_MS,
    SILENCE_THRESHOLD_MS,
    SIMULTANEITY_WINDOW_MS,
    TIMING_ROLLING_WINDOW,
)
from ..inference.chords import ChordProgression, DetectedChord, analyze_chord, update_progression
from ..inference.genre import GenrePattern, detect_genre_patterns
from ..inference.harmony import HarmonicFunction, NoteAnalysis, analyze_harmonic_function, classify_note
from ..inference.key import KeyCenter, KeyDetector, KeySegment
from ..inference.tendencies import AvoidancePatterns, PlayingTendencies, detect_avoidance, track_tendencies
from .accumulator import AnalysisAccumulator, RollingAccumulator

logger = logging.getLogger(__name__)


@dataclass
class AnalysisConfig:
    """Configuration for the analysis pipeline.

    Attributes:
        simultaneity_window_ms: Note-ons within this span of the cluster start form one chord (default: 50)
        silence_threshold_ms: Gap after which the progression is discarded (default: 10000)
        pattern_interval_ms: Performance time between genre/tendency runs (default: 30000)
        key_chord_window: Recent chords used for key detection (default: 8)
        modulation_chord_count: Recent chords examined for modulation (default: 3)
        min_chord_notes: Minimum cluster size passed to chord analysis (default: 3)
        timing_window: Timestamp/interval buffer size for tempo tracking (default: 32)
        max_notes: Accumulator note capacity (default: 2000)
        max_chords: Accumulator chord capacity (default: 500)
    """

    simultaneity_window_ms: float = SIMULTANEITY_WINDOW_MS
    silence_threshold_ms: float = SILENCE_THRESHOLD_MS
    pattern_interval_ms: float = PATTERN_ANALYSIS_INTERVAL_MS
    key_chord_window: int = KEY_DETECTION_CHORD_WINDOW
    modulation_chord_count: int = MODULATION_CHORD_COUNT
    min_chord_notes: int = MIN_NOTES_FOR_CHORD
    timing_window: int = TIMING_ROLLING_WINDOW
    max_notes: int = ACCUMULATOR_MAX_NOTES
    max_chords: int = ACCUMULATOR_MAX_CHORDS


@dataclass(frozen=True)
class PipelineUpdate:
    """Everything learned from one note-on event."""

    note: DetectedNote
    timing: Optional[TimingEvent] = None
    note_analysis: Optional[NoteAnalysis] = None
    chord: Optional[DetectedChord] = None  # Chord closed by this event
    progression: Optional[ChordProgression] = None
    key: Optional[KeyCenter] = None
    modulation: Optional[KeyCenter] = None  # New key when one was just established
    harmonic_function: Optional[HarmonicFunction] = None
    patterns_updated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note": self.note.to_dict(),
            "timing": self.timing.to_dict() if self.timing else None,
            "note_analysis": self.note_analysis.to_dict() if self.note_analysis else None,
            "chord": self.chord.to_dict() if self.chord else None,
            "progression": self.progression.to_dict() if self.progression else None,
            "key": self.key.to_dict() if self.key else None,
            "modulation": self.modulation.to_dict() if self.modulation else None,
            "harmonic_function": self.harmonic_function.to_dict() if self.harmonic_function else None,
            "patterns_updated": self.patterns_updated,
        }


@dataclass(frozen=True)
class SessionReport:
    """Summary of a performance so far."""

    tempo: Optional[float] = None
    accuracy: int = 100
    tempo_history: Tuple[TempoSegment, ...] = ()
    key: Optional[KeyCenter] = None
    key_history: Tuple[KeySegment, ...] = ()
    progression: Optional[ChordProgression] = None
    genres: Tuple[GenrePattern, ...] = ()
    tendencies: Optional[PlayingTendencies] = None
    avoidance: AvoidancePatterns = field(default_factory=AvoidancePatterns)
    flow: Optional[FlowState] = None
    total_notes: int = 0
    total_chords: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tempo": self.tempo,
            "accuracy": self.accuracy,
            "tempo_history": [s.to_dict() for s in self.tempo_history],
            "key": self.key.to_dict() if self.key else None,
            "key_history": [s.to_dict() for s in self.key_history],
            "progression": self.progression.to_dict() if self.progression else None,
            "genres": [g.to_dict() for g in self.genres],
            "tendencies": self.tendencies.to_dict() if self.tendencies else None,
            "avoidance": self.avoidance.to_dict(),
            "flow": self.flow.to_dict() if self.flow else None,
            "total_notes": self.total_notes,
            "total_chords": self.total_chords,
        }


@dataclass(frozen=True)
class ChordUpdate:
    """A chord closed from a note cluster, labelled in the key at that moment."""

    chord: DetectedChord
    key: Optional[KeyCenter] = None
    harmonic_function: Optional[HarmonicFunction] = None
    modulation: Optional[KeyCenter] = None  # New key when one was just established

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chord": self.chord.to_dict(),
            "key": self.key.to_dict() if self.key else None,
            "harmonic_function": self.harmonic_function.to_dict() if self.harmonic_function else None,
            "modulation": self.modulation.to_dict() if self.modulation else None,
        }


class AnalysisPipeline:
    """Orchestrate note, chord, timing, key and pattern analysis.

    Example:
        pipeline = AnalysisPipeline()
        for pitch, velocity, ts in events:
            update = pipeline.note_on(pitch, velocity, ts)
        pipeline.flush()
        report = pipeline.analyze_patterns()
    """

    def __init__(self, config: Optional[AnalysisConfig] = None):
        """
        Initialize AnalysisPipeline.

        Args:
            config: Pipeline tunables (defaults to AnalysisConfig())
        """
        self.config = config or AnalysisConfig()
        self.key_detector = KeyDetector(modulation_chords=self.config.modulation_chord_count)
        self.reset()

    def reset(self) -> None:
        """Clear all session state."""
        self.timing = TimingAnalyzer(window=self.config.timing_window)
        self.accumulator = RollingAccumulator(
            max_notes=self.config.max_notes,
            max_chords=self.config.max_chords,
        )
        self._held: Dict[int, DetectedNote] = {}
        self._cluster: List[DetectedNote] = []
        self._cluster_start: Optional[float] = None
        self._recent_chords: deque = deque(maxlen=self.config.key_chord_window)
        self._current_chord: Optional[DetectedChord] = None
        self._progression: Optional[ChordProgression] = None
        self._key: Optional[KeyCenter] = None
        self._key_history: List[KeySegment] = []
        self._last_event: Optional[float] = None
        self._last_pattern_run: Optional[float] = None
        self._genres: Tuple[GenrePattern, ...] = ()
        self._tendencies: Optional[PlayingTendencies] = None
        self._avoidance = AvoidancePatterns()

    # ------------------------------------------------------------------
    # Event input
    # ------------------------------------------------------------------

    def note_on(self, pitch: int, velocity: int, timestamp: float) -> Optional[PipelineUpdate]:
        """
        Process a note-on event.

        A note-on with velocity 0 is treated as a note-off and returns None.
        """
        if velocity == 0:
            self.note_off(pitch, timestamp)
            return None

        closed = None
        if self._cluster and timestamp - self._cluster_start > self.config.simultaneity_window_ms:
            closed = self._close_cluster()
        self._check_silence(timestamp)

        note = map_note(pitch, velocity, timestamp)
        self._held[pitch] = note
        self.accumulator.add_note(note)

        timing = self.timing.process_note_on(timestamp)
        self.accumulator.set_tempo_segments(self.timing.get_tempo_history(include_current=True))

        if not self._cluster:
            self._cluster_start = timestamp
        self._cluster.append(note)

        note_analysis = classify_note(note, self._current_chord)

        patterns_updated = False
        if self._last_pattern_run is None:
            self._last_pattern_run = timestamp
        elif timestamp - self._last_pattern_run >= self.config.pattern_interval_ms:
            self.analyze_patterns()
            patterns_updated = True

        return PipelineUpdate(
            note=note,
            timing=timing,
            note_analysis=note_analysis,
            chord=closed.chord if closed else None,
            progression=self._progression,
            key=self._key,
            modulation=closed.modulation if closed else None,
            harmonic_function=closed.harmonic_function if closed else None,
            patterns_updated=patterns_updated,
        )

    def note_off(self, pitch: int, timestamp: float) -> None:
        """Release a held note. Releasing every note clears the chord context."""
        self._check_silence(timestamp)
        self._held.pop(pitch, None)
        if not self._held:
            self._current_chord = None

    def flush(self) -> Optional[ChordUpdate]:
        """Close the pending cluster (e.g., at the end of a file)."""
        if not self._cluster:
            return None
        return self._close_cluster()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_silence(self, timestamp: float) -> None:
        if (
            self._last_event is not None
            and timestamp - self._last_event > self.config.silence_threshold_ms
            and self._progression is not None
        ):
            logger.info("Progression reset after %.0f ms of silence", timestamp - self._last_event)
            self._progression = None
            self._current_chord = None
        self._last_event = timestamp

    def _close_cluster(self) -> Optional[ChordUpdate]:
        cluster = self._cluster
        self._cluster = []
        self._cluster_start = None

        if len(cluster) < self.config.min_chord_notes:
            return None

        chord = analyze_chord(cluster)
        if chord is None:
            return None

        self.accumulator.add_chord(chord)
        self._progression = update_progression(chord, self._progression)
        sounding = any(note.midi_number in self._held for note in cluster)
        self._current_chord = chord if sounding else None
        self._recent_chords.append(chord)

        modulation = self._update_key(chord)
        function = analyze_harmonic_function(chord, self._key) if self._key else None

        logger.debug(
            "Chord %s (%s)",
            chord.display_name,
            function.roman_numeral if function else "no key",
        )
        return ChordUpdate(
            chord=chord,
            key=self._key,
            harmonic_function=function,
            modulation=modulation,
        )

    def _update_key(self, chord: DetectedChord) -> Optional[KeyCenter]:
        """Detect the initial key, or check the active key for modulation."""
        recent = list(self._recent_chords)

        if self._key is None:
            key = self.key_detector.detect_from_chords(recent)
            if key is not None:
                self._key = key
                self._key_history.append(KeySegment(key=key, start_timestamp=chord.timestamp))
                logger.info("Key detected: %s (%.2f)", key.name, key.confidence)
            return None

        new_key = self.key_detector.detect_modulation(self._key, recent)
        if new_key is None:
            return None

        self._key_history[-1] = replace(self._key_history[-1], end_timestamp=chord.timestamp)
        self._key_history.append(KeySegment(key=new_key, start_timestamp=chord.timestamp))
        self._key = new_key
        return new_key

    # ------------------------------------------------------------------
    # Session level analysis
    # ------------------------------------------------------------------

    def snapshot(self) -> AnalysisAccumulator:
        """Immutable snapshot of the accumulated session material."""
        self.accumulator.set_key_segments(self._key_history)
        return self.accumulator.snapshot()

    def analyze_patterns(self) -> SessionReport:
        """Run genre, tendency and avoidance analysis now."""
        snapshot = self.snapshot()
        self._genres = tuple(detect_genre_patterns(snapshot))
        self._tendencies = track_tendencies(snapshot)
        self._avoidance = detect_avoidance(self._tendencies, snapshot)
        self._last_pattern_run = snapshot.last_timestamp
        return self.report()

    def report(self) -> SessionReport:
        """Summary from the latest state and the latest pattern analysis."""
        flow = None
        if self._last_event is not None:
            flow = detect_flow_state(self.timing.get_deviations(), self._last_event)

        return SessionReport(
            tempo=self.timing.get_current_tempo(),
            accuracy=self.timing.get_accuracy(),
            tempo_history=tuple(self.timing.get_tempo_history(include_current=True)),
            key=self._key,
            key_history=tuple(self._key_history),
            progression=self._progression,
            genres=self._genres,
            tendencies=self._tendencies,
            avoidance=self._avoidance,
            flow=flow,
            total_notes=self.accumulator.total_note_count,
            total_chords=self.accumulator.total_chord_count,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def held_notes(self) -> List[DetectedNote]:
        return list(self._held.values())

    @property
    def current_chord(self) -> Optional[DetectedChord]:
        return self._current_chord

    @property
    def progression(self) -> Optional[ChordProgression]:
        return self._progression

    @property
    def key(self) -> Optional[KeyCenter]:
        return self._key
