"""Flow state detection from recent timing deviations."""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence

from ..core.constants import (
    FLOW_ACCURACY_THRESHOLD,
    FLOW_MIN_NOTES,
    FLOW_ON_TIME_TOLERANCE_MS,
    FLOW_WINDOW_MS,
)
from .tempo import TimingEvent


@dataclass(frozen=True)
class FlowState:
    """Whether the player is currently locked in with the beat."""

    is_in_flow: bool
    rolling_accuracy: float  # 0.0 - 1.0 over the window
    window_note_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def detect_flow_state(
    deviations: Sequence[TimingEvent],
    now_ms: float,
    window_ms: float = FLOW_WINDOW_MS,
) -> FlowState:
    """
    Detect flow over a rolling window of timing deviations.

    Flow requires at least FLOW_MIN_NOTES notes in the window, of which
    FLOW_ACCURACY_THRESHOLD or more land within FLOW_ON_TIME_TOLERANCE_MS
    of their beat.
    """
    window_start = now_ms - window_ms
    recent = [d for d in deviations if d.note_timestamp >= window_start]

    if len(recent) < FLOW_MIN_NOTES:
        return FlowState(is_in_flow=False, rolling_accuracy=0.0, window_note_count=len(recent))

    on_time = sum(1 for d in recent if abs(d.deviation_ms) <= FLOW_ON_TIME_TOLERANCE_MS)
    accuracy = on_time / len(recent)

    return FlowState(
        is_in_flow=accuracy >= FLOW_ACCURACY_THRESHOLD,
        rolling_accuracy=accuracy,
        window_note_count=len(recent),
    )
