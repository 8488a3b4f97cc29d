"""Key detection - Identify the tonal center of a performance.

Implements key detection with:
- Krumhansl-Schmuckler key profiles (24 rotated templates)
- A confidence floor below which no key is reported
- Relative major/minor disambiguation from chord roots and qualities
- Modulation detection over the most recent chords
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..core import PITCH_NAMES
from ..core.constants import (
    KEY_CONFIDENCE_THRESHOLD,
    MIN_CHORDS_FOR_KEY,
    MIN_NOTES_FOR_KEY,
    MODULATION_CHORD_COUNT,
    RELATIVE_KEY_CONFIDENCE_FACTOR,
)
from .chords import ChordQuality, DetectedChord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyCenter:
    """A detected key."""

    root: str  # Key root note (e.g., "C", "F#")
    mode: str  # "major" or "minor"
    confidence: float  # Pearson correlation with the key profile

    @property
    def name(self) -> str:
        return f"{self.root} {self.mode}"

    @property
    def root_pitch_class(self) -> int:
        return PITCH_NAMES.index(self.root) if self.root in PITCH_NAMES else -1

    def same_key(self, other: Optional["KeyCenter"]) -> bool:
        return other is not None and self.root == other.root and self.mode == other.mode

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class KeySegment:
    """A stretch of the session spent in one key."""

    key: KeyCenter
    start_timestamp: float
    end_timestamp: Optional[float] = None  # None while the key is current

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key.to_dict(),
            "start_timestamp": self.start_timestamp,
            "end_timestamp": self.end_timestamp,
        }


class KeyDetector:
    """Detect musical key from pitch classes or chords.

    Features:
    - Krumhansl-Schmuckler correlation over all 24 major/minor keys
    - "No key" instead of a low-confidence guess
    - Relative key disambiguation using chord context
    - Modulation checks against the currently active key
    """

    # Krumhansl-Schmuckler key profiles (cognitive-based)
    KRUMHANSL_MAJOR = np.array(
        [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
    )
    KRUMHANSL_MINOR = np.array(
        [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
    )

    MINOR_FAMILY = (ChordQuality.MINOR, ChordQuality.MINOR7)
    MAJOR_FAMILY = (ChordQuality.MAJOR, ChordQuality.MAJOR7)

    def __init__(
        self,
        min_notes: int = MIN_NOTES_FOR_KEY,
        min_chords: int = MIN_CHORDS_FOR_KEY,
        confidence_threshold: float = KEY_CONFIDENCE_THRESHOLD,
        modulation_chords: int = MODULATION_CHORD_COUNT,
    ):
        """
        Initialize KeyDetector.

        Args:
            min_notes: Minimum pitch classes required for detection
            min_chords: Minimum chords required for chord-based detection
            confidence_threshold: Correlation below which no key is reported
            modulation_chords: Number of recent chords examined for modulation
        """
        self.min_notes = min_notes
        self.min_chords = min_chords
        self.confidence_threshold = confidence_threshold
        self.modulation_chords = modulation_chords

    def detect(self, pitch_classes: Sequence[int]) -> Optional[KeyCenter]:
        """
        Detect the key from a list of pitch classes (repeats count).

        Args:
            pitch_classes: Pitch classes 0-11, one entry per sounded note

        Returns:
            KeyCenter, or None if too few notes or confidence is too low
        """
        if len(pitch_classes) < self.min_notes:
            return None

        distribution = self._build_pitch_class_distribution(pitch_classes)
        best = self._find_best_key(distribution)

        if best.confidence < self.confidence_threshold:
            return None
        return best

    def _build_pitch_class_distribution(self, pitch_classes: Sequence[int]) -> np.ndarray:
        """Build a 12-bin count histogram of pitch classes."""
        distribution = np.zeros(12)
        for pc in pitch_classes:
            distribution[pc % 12] += 1
        return distribution

    def _find_best_key(self, distribution: np.ndarray) -> KeyCenter:
        """
        Find best matching key using correlation.

        Keys are tested C..B, major before minor; the first best wins ties.
        """
        candidates = self._get_all_candidates(distribution)
        return max(candidates, key=lambda c: c.confidence)

    def _get_all_candidates(self, distribution: np.ndarray) -> List[KeyCenter]:
        """Score all 24 keys against the distribution."""
        candidates = []

        for shift in range(12):
            root = PITCH_NAMES[shift]
            rotated = np.roll(distribution, -shift)
            candidates.append(KeyCenter(root, "major", self._correlate(rotated, self.KRUMHANSL_MAJOR)))
            candidates.append(KeyCenter(root, "minor", self._correlate(rotated, self.KRUMHANSL_MINOR)))

        return candidates

    def _correlate(self, distribution: np.ndarray, profile: np.ndarray) -> float:
        """
        Calculate Pearson correlation between distribution and profile.

        Degenerate (flat) input correlates to 0.0.
        """
        if distribution.std() == 0 or profile.std() == 0:
            return 0.0

        corr = np.corrcoef(distribution, profile)[0, 1]
        if np.isnan(corr):
            return 0.0

        return float(corr)

    def detect_from_chords(self, chords: Sequence[DetectedChord]) -> Optional[KeyCenter]:
        """
        Detect the key from a chord progression.

        Uses every constituent note, then resolves relative major/minor
        ambiguity from the chords themselves.
        """
        if len(chords) < self.min_chords:
            return None

        key = self.detect(self._chord_pitch_classes(chords))
        if key is None:
            return None

        return self.disambiguate_with_chords(key, chords)

    def disambiguate_with_chords(
        self,
        key: KeyCenter,
        chords: Sequence[DetectedChord],
    ) -> KeyCenter:
        """
        Switch to the relative key when the chords clearly favor it.

        E.g., K-S says C major but the chords center on Am, Dm, Em.
        """
        if len(chords) < self.min_chords:
            return key

        key_pc = key.root_pitch_class
        if key_pc == -1:
            return key

        relative = self.get_relative_key(key)
        relative_pc = relative.root_pitch_class

        root_pcs = [c.root_pitch_class for c in chords]
        tonic_count = root_pcs.count(key_pc)
        relative_tonic_count = root_pcs.count(relative_pc)

        if relative_tonic_count <= tonic_count:
            return key

        minor_count = sum(1 for c in chords if ChordQuality(c.quality) in self.MINOR_FAMILY)
        major_count = sum(1 for c in chords if ChordQuality(c.quality) in self.MAJOR_FAMILY)

        if relative.mode == "minor":
            mode_matches = minor_count > major_count
        else:
            mode_matches = major_count > minor_count

        if not mode_matches:
            return key

        logger.debug("Key %s disambiguated to relative %s", key.name, relative.name)
        return KeyCenter(
            root=relative.root,
            mode=relative.mode,
            confidence=key.confidence * RELATIVE_KEY_CONFIDENCE_FACTOR,
        )

    def detect_modulation(
        self,
        current_key: KeyCenter,
        recent_chords: Sequence[DetectedChord],
    ) -> Optional[KeyCenter]:
        """
        Check whether the most recent chords establish a new key.

        Returns:
            The new KeyCenter, or None when the current key still holds
        """
        if len(recent_chords) < self.modulation_chords:
            return None

        recent = list(recent_chords)[-self.modulation_chords:]
        pitch_classes = self._chord_pitch_classes(recent)
        if len(pitch_classes) < self.min_notes:
            return None

        new_key = self.detect(pitch_classes)
        if new_key is None or new_key.same_key(current_key):
            return None

        if new_key.confidence < self.confidence_threshold:
            return None

        logger.info("Modulation %s -> %s", current_key.name, new_key.name)
        return new_key

    def get_relative_key(self, key: KeyCenter) -> KeyCenter:
        """
        Get the relative major/minor key.

        Relative minor is 9 semitones up (3 down) from major.
        Relative major is 3 semitones up from minor.
        """
        offset = 9 if key.mode == "major" else 3
        mode = "minor" if key.mode == "major" else "major"
        root = PITCH_NAMES[(key.root_pitch_class + offset) % 12]
        return KeyCenter(root=root, mode=mode, confidence=key.confidence)

    def get_scale_notes(self, root: str, mode: str) -> List[int]:
        """
        Get the pitch classes (0-11) that belong to a key's scale.

        Args:
            root: Root note (e.g., "C", "G")
            mode: "major" or "minor" (natural minor)
        """
        SCALE_INTERVALS = {
            "major": [0, 2, 4, 5, 7, 9, 11],
            "minor": [0, 2, 3, 5, 7, 8, 10],
        }

        root_idx = PITCH_NAMES.index(root)
        intervals = SCALE_INTERVALS.get(mode, SCALE_INTERVALS["major"])
        return [(root_idx + interval) % 12 for interval in intervals]

    def _chord_pitch_classes(self, chords: Sequence[DetectedChord]) -> List[int]:
        return [note.pitch_class for chord in chords for note in chord.notes]


_detector = KeyDetector()


def detect_key(pitch_classes: Sequence[int]) -> Optional[KeyCenter]:
    """Detect the likely key from pitch classes (Krumhansl-Schmuckler)."""
    return _detector.detect(pitch_classes)


def detect_key_from_chords(chords: Sequence[DetectedChord]) -> Optional[KeyCenter]:
    """Detect the key from chords, disambiguating relative major/minor."""
    return _detector.detect_from_chords(chords)


def detect_modulation(
    current_key: KeyCenter,
    recent_chords: Sequence[DetectedChord],
) -> Optional[KeyCenter]:
    """Detect a key change in the most recent chords."""
    return _detector.detect_modulation(current_key, recent_chords)
