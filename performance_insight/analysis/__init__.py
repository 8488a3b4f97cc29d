"""Analysis layer - Timing analysis of the note-on stream.

This layer works on timestamps only:
- Tempo detection (median IOI with rubato rejection)
- Beat grid and per-note deviation
- Tempo shift segmentation
- Flow state over recent deviations
- Swing feel from inter-onset interval pairs
"""

from .tempo import (
    BeatGrid,
    TempoEstimate,
    TimingEvent,
    TempoSegment,
    TimingAnalyzer,
    detect_tempo,
    build_beat_grid,
    measure_deviation,
    calculate_accuracy,
    detect_tempo_shift,
)
from .flow import FlowState, detect_flow_state
from .rhythm import note_iois, classify_ioi_pairs, swing_ratio

__all__ = [
    "BeatGrid",
    "TempoEstimate",
    "TimingEvent",
    "TempoSegment",
    "TimingAnalyzer",
    "detect_tempo",
    "build_beat_grid",
    "measure_deviation",
    "calculate_accuracy",
    "detect_tempo_shift",
    "FlowState",
    "detect_flow_state",
    "note_iois",
    "classify_ioi_pairs",
    "swing_ratio",
]
