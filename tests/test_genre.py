"""Tests for genre pattern detection."""

import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from performance_insight.core import map_note, PITCH_NAMES
from performance_insight.core.constants import (
    PROGRESSION_WEIGHT,
    SCALE_WEIGHT,
    RHYTHM_WEIGHT,
    VOICING_WEIGHT,
)
from performance_insight.inference import (
    ChordQuality,
    DetectedChord,
    GenreDetector,
    GENRE_TEMPLATES,
    detect_genre_patterns,
)
from performance_insight.session import AnalysisAccumulator


# ============================================================================
# Test Fixtures - Helper functions to create test data
# ============================================================================

def create_chord(root: str, quality: ChordQuality, timestamp: float = 0.0) -> DetectedChord:
    """Create a chord with a single root note (constituents unused here)."""
    note = map_note(48 + PITCH_NAMES.index(root), 90, timestamp)
    return DetectedChord(root=root, quality=quality, notes=(note,), timestamp=timestamp)


def create_melody(pitches: list, iois: list, start: float = 0.0) -> list:
    """Create notes with cycling inter-onset intervals."""
    notes = []
    time = start
    for i, pitch in enumerate(pitches):
        notes.append(map_note(pitch, 90, time))
        time += iois[i % len(iois)]
    return notes


def create_accumulator(notes=(), chords=()) -> AnalysisAccumulator:
    notes = tuple(notes)
    return AnalysisAccumulator(
        notes=notes,
        chords=tuple(chords),
        total_note_count=len(notes),
        total_chord_count=len(chords),
        start_timestamp=notes[0].timestamp if notes else 0.0,
        last_timestamp=notes[-1].timestamp if notes else 0.0,
    )


BLUES_SCALE = [60, 63, 64, 65, 66, 67, 70]
MAJOR_SCALE = [60, 62, 64, 65, 67, 69, 71]

D7 = ChordQuality.DOMINANT7


# ============================================================================
# Genre Detection Tests
# ============================================================================

class TestGenreDetection:
    """End-to-end genre scoring."""

    def test_insufficient_material(self):
        """Fewer than 3 chords and fewer than 8 notes yields nothing."""
        assert detect_genre_patterns(AnalysisAccumulator()) == []

        accumulator = create_accumulator(
            notes=create_melody(MAJOR_SCALE, [300]),
            chords=[create_chord("C", ChordQuality.MAJOR), create_chord("G", ChordQuality.MAJOR)],
        )
        assert detect_genre_patterns(accumulator) == []

    def test_twelve_bar_feel_is_blues(self):
        """I7-IV7-V7 with a swung blues scale ranks Blues first."""
        chords = [create_chord(root, D7) for root in ["C", "F", "G"] * 4]
        notes = create_melody(BLUES_SCALE * 2, [400, 200])

        results = detect_genre_patterns(create_accumulator(notes, chords))

        assert results
        assert results[0].genre == "Blues"
        assert set(results[0].matched_patterns) == {
            "chord-progression", "scale-usage", "rhythm", "chord-voicing",
        }
        assert results[0].confidence == pytest.approx(0.96)

    def test_pop_progression_is_pop(self):
        """I-V-vi-IV with straight major-scale melody ranks Pop first."""
        symbols = [("C", ChordQuality.MAJOR), ("G", ChordQuality.MAJOR),
                   ("A", ChordQuality.MINOR), ("F", ChordQuality.MAJOR)] * 3
        chords = [create_chord(root, quality) for root, quality in symbols]
        notes = create_melody(MAJOR_SCALE * 2, [300])

        results = detect_genre_patterns(create_accumulator(notes, chords))

        assert results[0].genre == "Pop"
        assert results[0].confidence == pytest.approx(0.96)

    def test_sorted_and_clipped(self):
        """Results are sorted by confidence and never exceed 1."""
        chords = [create_chord(root, D7) for root in ["C", "F", "G"] * 4]
        notes = create_melody(BLUES_SCALE * 2, [400, 200])

        results = detect_genre_patterns(create_accumulator(notes, chords))

        confidences = [r.confidence for r in results]
        assert confidences == sorted(confidences, reverse=True)
        assert all(0 < c <= 1 for c in confidences)
        assert all(r.matched_patterns for r in results)

    def test_notes_only(self):
        """Eight notes with no chords can still match on scale and rhythm."""
        notes = create_melody(MAJOR_SCALE * 2, [300])

        results = detect_genre_patterns(create_accumulator(notes))

        assert results
        assert all("chord-progression" not in r.matched_patterns for r in results)

    def test_to_dict(self):
        chords = [create_chord(root, D7) for root in ["C", "F", "G"] * 4]
        result = detect_genre_patterns(create_accumulator(chords=chords))[0]

        data = result.to_dict()
        assert set(data) == {"genre", "confidence", "matched_patterns"}
        assert isinstance(data["matched_patterns"], list)


# ============================================================================
# Sub-score Tests
# ============================================================================

class TestScores:
    """Tests for individual genre sub-scores."""

    def test_weights(self):
        assert PROGRESSION_WEIGHT + SCALE_WEIGHT + RHYTHM_WEIGHT + VOICING_WEIGHT == pytest.approx(1.0)

    def test_five_templates(self):
        genres = [t.genre for t in GENRE_TEMPLATES]
        assert genres == ["Blues", "Jazz", "Pop", "Rock", "Classical"]

    def test_progression_needs_three_chords(self):
        detector = GenreDetector()

        assert detector.score_progressions([0, 5], [("I", "IV")]) == 0.0

    def test_progression_is_key_independent(self):
        """I-IV-V in any key matches the same template."""
        detector = GenreDetector()

        in_c = detector.score_progressions([0, 5, 7], [("I", "IV", "V")])
        in_e = detector.score_progressions([4, 9, 11], [("I", "IV", "V")])

        assert in_c == in_e == 1.0

    def test_progression_compared_from_the_tonic(self):
        """Windows start at 0, so progressions not starting on I never match."""
        detector = GenreDetector()
        jazz = GENRE_TEMPLATES[1]
        classical = GENRE_TEMPLATES[4]

        assert detector.score_progressions([2, 7, 0] * 3, jazz.progressions) == 0.0
        assert detector.score_progressions([5, 7, 0] * 3, [("IV", "V", "I")]) == 0.0
        assert detector.score_progressions([5, 7, 0] * 3, classical.progressions) == 0.0

    def test_progression_skips_unknown_roots(self):
        detector = GenreDetector()

        assert detector.score_progressions([0, None, 7], [("I", "IV", "V")]) == 0.0

    def test_progression_normalization(self):
        """Matches are normalized by 30% of the possible windows."""
        detector = GenreDetector()
        roots = [0, 5, 7] + [1] * 7

        # 8 windows, 1 match -> 1 / 2.4
        assert detector.score_progressions(roots, [("I", "IV", "V")]) == pytest.approx(1 / 2.4)

    def test_scale_usage_perfect_match(self):
        """A distribution equal to the profile (any rotation) scores 1."""
        detector = GenreDetector()
        accumulator = create_accumulator(create_melody([62, 64, 66, 67, 69, 71, 73], [300]))

        distribution = detector._normalized_distribution(accumulator)

        assert detector.score_scale_usage(distribution, GENRE_TEMPLATES[2].scale_profile) == pytest.approx(1.0)

    def test_scale_usage_no_notes(self):
        assert GenreDetector().score_scale_usage(None, GENRE_TEMPLATES[0].scale_profile) == 0.0

    @pytest.mark.parametrize("iois,swing_expected,expected", [
        ([400, 200] * 4, True, 0.8),
        ([300] * 8, False, 0.8),
        ([300] * 8, True, 0.2),
        ([400, 200] * 4, False, 0.2),
        ([400, 200] * 2 + [300] * 8, True, 0.4),
        ([400, 200] * 2 + [300] * 8, False, 0.8),
        ([100, 1000], True, 0.5),
        ([300], True, 0.0),
    ])
    def test_rhythm_scores(self, iois, swing_expected, expected):
        assert GenreDetector().score_rhythm(iois, swing_expected) == expected

    def test_voicing(self):
        detector = GenreDetector()
        chords = [create_chord("C", D7), create_chord("F", ChordQuality.MAJOR)]

        assert detector.score_voicing(chords, frozenset({D7})) == 0.5
        assert detector.score_voicing([], frozenset({D7})) == 0.0
        assert detector.score_voicing([create_chord("C", "Dominant7")], frozenset({D7})) == 1.0
