"""Genre pattern detection - Score a session against stylistic templates.

Each genre template combines four independent signals:
- Chord progression shapes (roman numeral sequences, relative to the first chord)
- Scale usage (pitch-class profile, best of 12 rotations)
- Rhythm feel (swing vs straight eighth pairs)
- Chord voicing (preferred chord qualities)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from ..analysis.rhythm import classify_ioi_pairs, note_iois
from ..core.constants import (
    GENRE_CONFIDENCE_THRESHOLD,
    GENRE_MIN_CHORDS,
    GENRE_MIN_NOTES,
    PATTERN_TAG_THRESHOLD,
    PROGRESSION_WEIGHT,
    PROGRESSION_WINDOW_FACTOR,
    RHYTHM_WEIGHT,
    SCALE_WEIGHT,
    SWING_THRESHOLD,
    VOICING_WEIGHT,
)
from .chords import ChordQuality, DetectedChord

if TYPE_CHECKING:
    from ..session.accumulator import AnalysisAccumulator

logger = logging.getLogger(__name__)

# Pattern tags reported in GenrePattern.matched_patterns
PATTERN_PROGRESSION = "chord-progression"
PATTERN_SCALE = "scale-usage"
PATTERN_RHYTHM = "rhythm"
PATTERN_VOICING = "chord-voicing"

# Roman numeral -> semitones above the tonic
NUMERAL_TO_SEMITONE = {
    "I": 0,
    "bII": 1,
    "II": 2, "ii": 2,
    "bIII": 3,
    "III": 4, "iii": 4,
    "IV": 5, "iv": 5,
    "#IV": 6,
    "V": 7, "v": 7,
    "bVI": 8,
    "VI": 9, "vi": 9,
    "bVII": 10,
    "VII": 11, "vii°": 11,
}

# Scale profiles (1 = scale tone, relative to the root)
PENTATONIC_PROFILE = (1, 0, 1, 0, 1, 0, 0, 1, 0, 1, 0, 0)
BLUES_PROFILE = (1, 0, 0, 1, 1, 1, 1, 1, 0, 0, 1, 0)
CHROMATIC_PROFILE = (1,) * 12
MAJOR_SCALE_PROFILE = (1, 0, 1, 0, 1, 1, 0, 1, 0, 1, 0, 1)


@dataclass(frozen=True)
class GenreTemplate:
    """Stylistic fingerprint of one genre."""

    genre: str
    progressions: Tuple[Tuple[str, ...], ...]
    scale_profile: Tuple[int, ...]
    preferred_qualities: FrozenSet[ChordQuality]
    swing_expected: bool


@dataclass(frozen=True)
class GenrePattern:
    """A genre the session resembles."""

    genre: str
    confidence: float  # 0.0 - 1.0
    matched_patterns: Tuple[str, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "genre": self.genre,
            "confidence": self.confidence,
            "matched_patterns": list(self.matched_patterns),
        }


GENRE_TEMPLATES: Tuple[GenreTemplate, ...] = (
    GenreTemplate(
        genre="Blues",
        progressions=(
            ("I", "IV", "V"),
            ("I", "I", "IV", "IV", "V", "IV", "I"),
        ),
        scale_profile=BLUES_PROFILE,
        preferred_qualities=frozenset({ChordQuality.DOMINANT7, ChordQuality.MINOR, ChordQuality.MINOR7}),
        swing_expected=True,
    ),
    GenreTemplate(
        genre="Jazz",
        progressions=(
            ("ii", "V", "I"),
            ("ii", "V", "I", "vi"),
        ),
        scale_profile=CHROMATIC_PROFILE,
        preferred_qualities=frozenset({ChordQuality.DOMINANT7, ChordQuality.MINOR7, ChordQuality.MAJOR7}),
        swing_expected=True,
    ),
    GenreTemplate(
        genre="Pop",
        progressions=(
            ("I", "V", "vi", "IV"),
            ("I", "IV", "V", "I"),
            ("vi", "IV", "I", "V"),
        ),
        scale_profile=MAJOR_SCALE_PROFILE,
        preferred_qualities=frozenset({ChordQuality.MAJOR, ChordQuality.MINOR}),
        swing_expected=False,
    ),
    GenreTemplate(
        genre="Rock",
        progressions=(
            ("I", "IV", "V"),
            ("I", "bVII", "IV"),
        ),
        scale_profile=PENTATONIC_PROFILE,
        preferred_qualities=frozenset({ChordQuality.MAJOR, ChordQuality.SUS4, ChordQuality.SUS2}),
        swing_expected=False,
    ),
    GenreTemplate(
        genre="Classical",
        progressions=(
            ("IV", "V", "I"),
            ("ii", "V", "I"),
            ("IV", "vii°", "I"),
        ),
        scale_profile=MAJOR_SCALE_PROFILE,
        preferred_qualities=frozenset({ChordQuality.MAJOR, ChordQuality.MINOR, ChordQuality.DIMINISHED}),
        swing_expected=False,
    ),
)


class GenreDetector:
    """Score accumulated notes and chords against genre templates.

    Features:
    - Weighted combination of progression, scale, rhythm and voicing scores
    - A template qualifies only with a minimum score and at least one tag
    - Results sorted by confidence, highest first
    """

    def __init__(
        self,
        templates: Sequence[GenreTemplate] = GENRE_TEMPLATES,
        confidence_threshold: float = GENRE_CONFIDENCE_THRESHOLD,
    ):
        """
        Initialize GenreDetector.

        Args:
            templates: Genre templates to score against
            confidence_threshold: Minimum combined score for a genre to qualify
        """
        self.templates = tuple(templates)
        self.confidence_threshold = confidence_threshold

    def detect(self, accumulator: "AnalysisAccumulator") -> List[GenrePattern]:
        """
        Detect genre patterns in an accumulator snapshot.

        Returns:
            Qualifying GenrePatterns sorted by confidence (descending),
            or [] when there is too little material
        """
        if len(accumulator.chords) < GENRE_MIN_CHORDS and len(accumulator.notes) < GENRE_MIN_NOTES:
            return []

        # Template independent inputs, computed once
        roots = self._chord_roots(accumulator.chords)
        distribution = self._normalized_distribution(accumulator)
        iois = note_iois(accumulator.notes) if len(accumulator.notes) >= 4 else []

        results = []
        for template in self.templates:
            pattern = self._score_template(template, accumulator, roots, distribution, iois)
            if pattern is not None:
                results.append(pattern)

        results.sort(key=lambda p: p.confidence, reverse=True)
        if results:
            logger.debug("Genre candidates: %s", [(p.genre, round(p.confidence, 2)) for p in results])
        return results

    def _score_template(
        self,
        template: GenreTemplate,
        accumulator: "AnalysisAccumulator",
        roots: List[Optional[int]],
        distribution: Optional[np.ndarray],
        iois: List[float],
    ) -> Optional[GenrePattern]:
        matched = []
        score = 0.0

        progression_score = self.score_progressions(roots, template.progressions)
        if progression_score > 0:
            matched.append(PATTERN_PROGRESSION)
        score += progression_score * PROGRESSION_WEIGHT

        scale_score = self.score_scale_usage(distribution, template.scale_profile)
        if scale_score > PATTERN_TAG_THRESHOLD:
            matched.append(PATTERN_SCALE)
        score += scale_score * SCALE_WEIGHT

        rhythm_score = self.score_rhythm(iois, template.swing_expected)
        if rhythm_score > PATTERN_TAG_THRESHOLD:
            matched.append(PATTERN_RHYTHM)
        score += rhythm_score * RHYTHM_WEIGHT

        voicing_score = self.score_voicing(accumulator.chords, template.preferred_qualities)
        if voicing_score > PATTERN_TAG_THRESHOLD:
            matched.append(PATTERN_VOICING)
        score += voicing_score * VOICING_WEIGHT

        if score < self.confidence_threshold or not matched:
            return None

        return GenrePattern(
            genre=template.genre,
            confidence=min(score, 1.0),
            matched_patterns=tuple(matched),
        )

    def score_progressions(
        self,
        roots: Sequence[Optional[int]],
        progressions: Sequence[Sequence[str]],
    ) -> float:
        """
        Best match score over a template's progressions.

        Requires at least GENRE_MIN_CHORDS chords.
        """
        if len(roots) < GENRE_MIN_CHORDS:
            return 0.0

        return max(
            (self._match_progression(roots, numerals) for numerals in progressions),
            default=0.0,
        )

    def _match_progression(self, roots: Sequence[Optional[int]], numerals: Sequence[str]) -> float:
        """
        Count windows whose root motion equals the progression's shape.

        The window is taken relative to its first chord and compared with
        the progression's semitones above I, so progressions that do not
        start on I never match. Windows containing an unknown root are
        skipped.
        """
        target = self._numerals_to_intervals(numerals)
        if target is None:
            return 0.0

        window_size = len(target)
        possible_windows = len(roots) - window_size + 1
        if possible_windows <= 0:
            return 0.0

        matches = 0
        for start in range(possible_windows):
            window = roots[start:start + window_size]
            if any(r is None for r in window):
                continue
            base = window[0]
            if tuple((r - base) % 12 for r in window) == target:
                matches += 1

        return min(matches / max(possible_windows * PROGRESSION_WINDOW_FACTOR, 1), 1.0)

    def _numerals_to_intervals(self, numerals: Sequence[str]) -> Optional[Tuple[int, ...]]:
        semitones = []
        for numeral in numerals:
            if numeral not in NUMERAL_TO_SEMITONE:
                return None
            semitones.append(NUMERAL_TO_SEMITONE[numeral])
        return tuple(semitones)

    def score_scale_usage(
        self,
        distribution: Optional[np.ndarray],
        profile: Sequence[int],
    ) -> float:
        """Best cosine similarity between the note distribution and the profile over 12 rotations."""
        if distribution is None:
            return 0.0

        profile_arr = np.asarray(profile, dtype=float)
        best = 0.0
        for rotation in range(12):
            rotated = np.roll(distribution, -rotation)
            denom = np.sqrt(np.dot(rotated, rotated) * np.dot(profile_arr, profile_arr))
            if denom > 0:
                best = max(best, float(np.dot(rotated, profile_arr) / denom))
        return best

    def score_rhythm(self, iois: Sequence[float], swing_expected: bool) -> float:
        """
        Score how well the rhythmic feel matches the swing expectation.

        Full credit (0.8) when the feel matches, graded partial credit
        otherwise, and a neutral 0.5 when no pair could be classified.
        """
        if len(iois) < 2:
            return 0.0

        long_short, straight = classify_ioi_pairs(iois)
        classified = long_short + straight
        if classified == 0:
            return 0.5

        ratio = long_short / classified
        is_swing = ratio > SWING_THRESHOLD

        if swing_expected == is_swing:
            return 0.8
        if swing_expected and ratio > 0.2:
            return 0.4
        if not swing_expected and ratio < 0.3:
            return 0.6
        return 0.2

    def score_voicing(
        self,
        chords: Sequence[DetectedChord],
        preferred: FrozenSet[ChordQuality],
    ) -> float:
        """Fraction of chords in the preferred quality set."""
        if not chords:
            return 0.0
        return sum(1 for c in chords if ChordQuality(c.quality) in preferred) / len(chords)

    def _chord_roots(self, chords: Sequence[DetectedChord]) -> List[Optional[int]]:
        return [c.root_pitch_class if c.root_pitch_class != -1 else None for c in chords]

    def _normalized_distribution(self, accumulator: "AnalysisAccumulator") -> Optional[np.ndarray]:
        """Pitch-class histogram of buffered notes, normalized to sum to 1."""
        if not accumulator.notes:
            return None

        distribution = np.zeros(12)
        for note in accumulator.notes:
            distribution[note.pitch_class] += 1
        return distribution / len(accumulator.notes)


_detector = GenreDetector()


def detect_genre_patterns(accumulator: "AnalysisAccumulator") -> List[GenrePattern]:
    """Score an accumulator snapshot against all genre templates."""
    return _detector.detect(accumulator)
