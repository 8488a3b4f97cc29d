"""Rhythm feel helpers shared by genre and tendency analysis."""

from typing import List, Sequence, Tuple

from ..core import DetectedNote
from ..core.constants import MAX_RHYTHM_IOI_MS, STRAIGHT_RATIO_RANGE, SWING_RATIO_RANGE


def note_iois(notes: Sequence[DetectedNote]) -> List[float]:
    """Inter-onset intervals between consecutive notes, kept within (0, 2000) ms."""
    iois = []
    for previous, current in zip(notes, notes[1:]):
        ioi = current.timestamp - previous.timestamp
        if 0 < ioi < MAX_RHYTHM_IOI_MS:
            iois.append(ioi)
    return iois


def classify_ioi_pairs(iois: Sequence[float]) -> Tuple[int, int]:
    """
    Classify non-overlapping IOI pairs as long-short or straight.

    Pairs are (0, 1), (2, 3), ...; a trailing odd IOI is ignored.

    Returns:
        (long_short_pairs, straight_pairs)
    """
    swing_low, swing_high = SWING_RATIO_RANGE
    straight_low, straight_high = STRAIGHT_RATIO_RANGE

    long_short = 0
    straight = 0
    for i in range(0, len(iois) - 1, 2):
        ratio = iois[i] / iois[i + 1]
        if swing_low < ratio < swing_high:
            long_short += 1
        elif straight_low < ratio < straight_high:
            straight += 1
    return long_short, straight


def swing_ratio(iois: Sequence[float]) -> float:
    """Share of classified pairs that are long-short, 0.0 if none are classified."""
    long_short, straight = classify_ioi_pairs(iois)
    classified = long_short + straight
    if classified == 0:
        return 0.0
    return long_short / classified
