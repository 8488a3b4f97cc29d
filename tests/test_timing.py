"""Tests for tempo detection, beat grid, timing accuracy and flow state."""

import pytest
from pathlib import Path
import sys

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from performance_insight.analysis import (
    TimingAnalyzer,
    TimingEvent,
    detect_tempo,
    build_beat_grid,
    measure_deviation,
    calculate_accuracy,
    detect_tempo_shift,
    detect_flow_state,
    note_iois,
    classify_ioi_pairs,
    swing_ratio,
)
from performance_insight.core import map_note


# ============================================================================
# Test Fixtures - Helper functions to create test data
# ============================================================================

def isochronous(bpm: float, count: int = 8, start: float = 0.0) -> list:
    """Timestamps for `count` beats at a steady tempo."""
    interval = 60_000 / bpm
    return [start + i * interval for i in range(count)]


def timing_event(deviation_ms: float, timestamp: float = 0.0) -> TimingEvent:
    """Create a TimingEvent with a given deviation."""
    return TimingEvent(
        note_timestamp=timestamp,
        expected_beat_timestamp=timestamp - deviation_ms,
        deviation_ms=deviation_ms,
        beat_index=0,
    )


RUBATO = [0, 200, 800, 900, 2000, 2100, 3500, 3600]


# ============================================================================
# Tempo Detection Tests
# ============================================================================

class TestDetectTempo:
    """Tests for standalone tempo detection."""

    def test_120_bpm_scenario(self):
        """8 notes 500 ms apart detect 120 BPM."""
        estimate = detect_tempo(isochronous(120))

        assert estimate is not None
        assert estimate.bpm == 120.0
        assert estimate.confidence == 1.0

    @pytest.mark.parametrize("bpm", [20, 45, 60, 90, 120, 174, 300])
    def test_isochronous_range(self, bpm):
        """Steady input anywhere in the playable range is detected."""
        estimate = detect_tempo(isochronous(bpm))

        assert estimate is not None
        assert estimate.bpm == pytest.approx(bpm, abs=0.1)

    def test_minimum_four_notes(self):
        """Four notes are enough, three are not."""
        assert detect_tempo(isochronous(100, count=4)) is not None
        assert detect_tempo(isochronous(100, count=3)) is None

    def test_empty_and_single(self):
        """No data means no tempo."""
        assert detect_tempo([]) is None
        assert detect_tempo([1000.0]) is None

    def test_rubato_rejected(self):
        """Relative MAD above 0.25 yields no tempo."""
        assert detect_tempo(RUBATO) is None

    def test_out_of_range_intervals_ignored(self):
        """Grace notes (< 200 ms IOI) don't drag the estimate."""
        timestamps = [0, 500, 510, 1000, 1500, 2000]

        estimate = detect_tempo(timestamps)

        assert estimate is not None
        assert estimate.bpm == 120.0

    def test_too_fast(self):
        """Trills faster than 300 BPM are not a tempo."""
        assert detect_tempo(isochronous(600)) is None


# ============================================================================
# Beat Grid Tests
# ============================================================================

class TestBeatGrid:
    """Tests for beat grid and deviation measurement."""

    def test_grid_positions(self):
        """Grid maps beat index to expected time."""
        grid = build_beat_grid(0, 120)

        assert grid(0) == 0
        assert grid(1) == 500
        assert grid(4) == 2000

    def test_deviation_scenario(self):
        """A note at 480 ms on a 120 BPM grid is 20 ms early on beat 1."""
        grid = build_beat_grid(0, 120)

        event = measure_deviation(480, grid, 120, 0)

        assert event.deviation_ms == -20
        assert event.beat_index == 1
        assert event.expected_beat_timestamp == 500

    def test_late_note(self):
        """Positive deviation means late."""
        grid = build_beat_grid(1000, 60)

        event = measure_deviation(2040, grid, 60, 1000)

        assert event.beat_index == 1
        assert event.deviation_ms == 40

    def test_half_beat_rounds_up(self):
        """Exactly between beats snaps to the later beat."""
        grid = build_beat_grid(0, 120)

        event = measure_deviation(250, grid, 120, 0)

        assert event.beat_index == 1
        assert event.deviation_ms == -250


# ============================================================================
# Accuracy Tests
# ============================================================================

class TestAccuracy:
    """Tests for calculate_accuracy."""

    def test_empty_is_perfect(self):
        assert calculate_accuracy([]) == 100

    def test_boundary_is_on_time(self):
        """Exactly at the tolerance counts as on-beat."""
        assert calculate_accuracy([timing_event(30)]) == 100
        assert calculate_accuracy([timing_event(-30)]) == 100

    def test_beyond_boundary(self):
        """One unit beyond the tolerance is off-beat."""
        assert calculate_accuracy([timing_event(31)]) == 0
        assert calculate_accuracy([timing_event(-31)]) == 0

    def test_rounded_percentage(self):
        """Accuracy is a rounded percentage."""
        events = [timing_event(0), timing_event(5), timing_event(100)]

        assert calculate_accuracy(events) == 67


# ============================================================================
# Tempo Shift Tests
# ============================================================================

class TestTempoShift:
    """Tests for detect_tempo_shift."""

    def test_stable(self):
        assert detect_tempo_shift(120, [500] * 8) is None

    def test_shift_detected(self):
        """A >10% change returns the new BPM."""
        assert detect_tempo_shift(120, [400] * 8) == 150.0

    def test_small_change_ignored(self):
        """Under 10% is not a shift."""
        assert detect_tempo_shift(120, [480] * 8) is None

    def test_needs_eight_intervals(self):
        assert detect_tempo_shift(120, [400] * 7) is None

    def test_only_recent_intervals(self):
        """Older intervals don't affect the shift check."""
        assert detect_tempo_shift(120, [1000] * 20 + [500] * 8) is None


# ============================================================================
# TimingAnalyzer Tests
# ============================================================================

class TestTimingAnalyzer:
    """Tests for the stateful timing analyzer."""

    def test_no_tempo_until_four_notes(self):
        """The first notes establish tempo, then deviations are measured."""
        analyzer = TimingAnalyzer()
        results = [analyzer.process_note_on(ts) for ts in isochronous(120, count=6)]

        assert results[:3] == [None, None, None]
        assert results[3] is not None
        assert results[3].deviation_ms == 0
        assert results[3].beat_index == 3
        assert analyzer.get_current_tempo() == 120.0
        assert analyzer.get_accuracy() == 100

    def test_irregular_input_never_detects(self):
        """Rubato playing keeps the analyzer in the no-tempo state."""
        analyzer = TimingAnalyzer()
        results = [analyzer.process_note_on(ts) for ts in RUBATO]

        assert all(r is None for r in results)
        assert analyzer.get_current_tempo() is None
        assert analyzer.get_deviations() == []

    def test_tempo_shift_segments(self):
        """Speeding up from 120 to 150 BPM splits the tempo history."""
        analyzer = TimingAnalyzer()
        timestamps = isochronous(120, count=9)
        timestamps += [timestamps[-1] + 400 * i for i in range(1, 13)]

        for ts in timestamps:
            analyzer.process_note_on(ts)

        history = analyzer.get_tempo_history()
        assert analyzer.get_current_tempo() == 150.0
        assert len(history) >= 1
        assert history[0].bpm == 120.0
        assert history[0].start_timestamp == 0
        for previous, current in zip(history, history[1:]):
            assert previous.end_timestamp == current.start_timestamp

    def test_history_with_current_segment(self):
        """The open segment can be included, ending at the latest note."""
        analyzer = TimingAnalyzer()
        for ts in isochronous(120, count=6):
            analyzer.process_note_on(ts)

        assert analyzer.get_tempo_history() == []
        current = analyzer.get_tempo_history(include_current=True)
        assert len(current) == 1
        assert current[0].bpm == 120.0
        assert current[0].start_timestamp == 0
        assert current[0].end_timestamp == 2500
        assert current[0].note_count == 6

    def test_deviation_capacity(self):
        """Deviations are bounded."""
        analyzer = TimingAnalyzer(window=8)
        for ts in isochronous(120, count=40):
            analyzer.process_note_on(ts)

        assert len(analyzer.get_deviations()) == 16

    def test_reset(self):
        """Reset returns to the no-tempo state."""
        analyzer = TimingAnalyzer()
        for ts in isochronous(120):
            analyzer.process_note_on(ts)

        analyzer.reset()

        assert analyzer.get_current_tempo() is None
        assert analyzer.get_tempo_history(include_current=True) == []
        assert analyzer.get_accuracy() == 100
        assert analyzer.process_note_on(10_000) is None


# ============================================================================
# Flow State Tests
# ============================================================================

class TestFlowState:
    """Tests for detect_flow_state."""

    def test_in_flow(self):
        """12 on-time notes in the window is flow."""
        deviations = [timing_event(10, timestamp=i * 500) for i in range(12)]

        state = detect_flow_state(deviations, now_ms=6000)

        assert state.is_in_flow
        assert state.rolling_accuracy == 1.0
        assert state.window_note_count == 12

    def test_too_few_notes(self):
        deviations = [timing_event(0, timestamp=i * 500) for i in range(11)]

        assert not detect_flow_state(deviations, now_ms=6000).is_in_flow

    def test_old_notes_excluded(self):
        """Only the last 30 s count."""
        deviations = [timing_event(0, timestamp=i * 500) for i in range(12)]

        state = detect_flow_state(deviations, now_ms=100_000)

        assert state.window_note_count == 0
        assert not state.is_in_flow

    def test_sloppy_timing(self):
        """Below 85% on-time is not flow; 50 ms counts as on-time."""
        deviations = [timing_event(50, timestamp=i * 100) for i in range(10)]
        deviations += [timing_event(80, timestamp=1000 + i * 100) for i in range(10)]

        state = detect_flow_state(deviations, now_ms=2000)

        assert state.rolling_accuracy == pytest.approx(0.5)
        assert not state.is_in_flow


# ============================================================================
# Rhythm Feel Tests
# ============================================================================

class TestRhythmFeel:
    """Tests for IOI pairing helpers."""

    def test_note_iois_filters_range(self):
        notes = [map_note(60, 90, ts) for ts in [0, 0, 300, 2500, 2700]]

        assert note_iois(notes) == [300, 200]

    def test_swing_pairs(self):
        """Long-short pairs (2:1) are swing."""
        assert classify_ioi_pairs([400, 200, 400, 200]) == (2, 0)
        assert swing_ratio([400, 200, 400, 200]) == 1.0

    def test_straight_pairs(self):
        assert classify_ioi_pairs([300, 300, 300, 300, 300]) == (0, 2)
        assert swing_ratio([300, 300, 300, 300]) == 0.0

    def test_unclassified(self):
        """Pairs outside both ranges don't count."""
        assert classify_ioi_pairs([100, 1000]) == (0, 0)
        assert swing_ratio([100, 1000]) == 0.0
