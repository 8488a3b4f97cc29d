"""Inference layer - Musical understanding and analysis.

This layer builds higher-level musical understanding from notes:
- Chord recognition and progression tracking
- Key detection (tonal center) and modulation
- Harmonic function (roman numerals) and chord-tone classification
- Genre pattern scoring
- Playing tendencies and avoidance

Pipeline: Notes → Chords → [Key, Harmony] → [Genre, Tendencies]
"""

from .chords import (
    ChordAnalyzer,
    ChordQuality,
    DetectedChord,
    ChordProgression,
    ALL_CHORD_QUALITIES,
    analyze_chord,
    update_progression,
    chord_display_name,
)
from .key import (
    KeyDetector,
    KeyCenter,
    KeySegment,
    detect_key,
    detect_key_from_chords,
    detect_modulation,
)
from .harmony import (
    HarmonyAnalyzer,
    HarmonicFunction,
    NoteAnalysis,
    analyze_harmonic_function,
    classify_note,
)
from .genre import (
    GenreDetector,
    GenrePattern,
    GenreTemplate,
    GENRE_TEMPLATES,
    detect_genre_patterns,
)
from .tendencies import (
    TendencyTracker,
    RhythmProfile,
    PlayingTendencies,
    TempoRange,
    AvoidancePatterns,
    track_tendencies,
    detect_avoidance,
)

__all__ = [
    # Chord analysis
    "ChordAnalyzer",
    "ChordQuality",
    "DetectedChord",
    "ChordProgression",
    "ALL_CHORD_QUALITIES",
    "analyze_chord",
    "update_progression",
    "chord_display_name",
    # Key detection
    "KeyDetector",
    "KeyCenter",
    "KeySegment",
    "detect_key",
    "detect_key_from_chords",
    "detect_modulation",
    # Harmony analysis
    "HarmonyAnalyzer",
    "HarmonicFunction",
    "NoteAnalysis",
    "analyze_harmonic_function",
    "classify_note",
    # Genre patterns
    "GenreDetector",
    "GenrePattern",
    "GenreTemplate",
    "GENRE_TEMPLATES",
    "detect_genre_patterns",
    # Tendencies
    "TendencyTracker",
    "RhythmProfile",
    "PlayingTendencies",
    "TempoRange",
    "AvoidancePatterns",
    "track_tendencies",
    "detect_avoidance",
]
