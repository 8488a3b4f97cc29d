"""Performance Insight - Live MIDI performance analysis.

Architecture Layers:
    1. core/      - Note identity and calibration constants
    2. input/     - MIDI file loading into note events
    3. analysis/  - Timing analysis (tempo, beat grid, deviation, flow)
    4. inference/ - Musical understanding (chords, key, harmony, genre, tendencies)
    5. session/   - Accumulator and the note-event pipeline
"""

__version__ = "0.1.0"

# Core types
from .core import DetectedNote, map_note, note_display_name

# Analysis layer
from .analysis import TimingAnalyzer, detect_tempo, detect_flow_state

# Inference layer
from .inference import (
    analyze_chord,
    update_progression,
    chord_display_name,
    detect_key,
    detect_key_from_chords,
    detect_modulation,
    analyze_harmonic_function,
    classify_note,
    detect_genre_patterns,
    track_tendencies,
    detect_avoidance,
)

# Session layer
from .session import AnalysisPipeline, AnalysisConfig, RollingAccumulator

# Input layer
from .input import MidiLoader

__all__ = [
    # Core
    "DetectedNote",
    "map_note",
    "note_display_name",
    # Analysis
    "TimingAnalyzer",
    "detect_tempo",
    "detect_flow_state",
    # Inference
    "analyze_chord",
    "update_progression",
    "chord_display_name",
    "detect_key",
    "detect_key_from_chords",
    "detect_modulation",
    "analyze_harmonic_function",
    "classify_note",
    "detect_genre_patterns",
    "track_tendencies",
    "detect_avoidance",
    # Session
    "AnalysisPipeline",
    "AnalysisConfig",
    "RollingAccumulator",
    # Input
    "MidiLoader",
]
