"""Global constants for Performance Insight."""

# Pitch names (sharp spelling)
PITCH_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# MIDI ranges
MIDI_MIN = 0
MIDI_MAX = 127

# Clustering / session
SIMULTANEITY_WINDOW_MS = 50
SILENCE_THRESHOLD_MS = 10_000
PATTERN_ANALYSIS_INTERVAL_MS = 30_000
MIN_NOTES_FOR_CHORD = 3

# Timing analysis
ON_BEAT_TOLERANCE_MS = 30
TEMPO_SHIFT_THRESHOLD = 0.1  # relative BPM change
MIN_NOTES_FOR_TEMPO = 4
MIN_BEATS_FOR_SHIFT = 8
TIMING_ROLLING_WINDOW = 32
MAX_RUBATO_RATIO = 0.25  # MAD / median IOI
MIN_BPM = 20.0
MAX_BPM = 300.0
MIN_IOI_MS = 60_000 / MAX_BPM  # 200 ms
MAX_IOI_MS = 60_000 / MIN_BPM  # 3000 ms
CONSISTENT_IOI_TOLERANCE = 0.2  # share of median for confidence

# Flow state
FLOW_WINDOW_MS = 30_000
FLOW_ACCURACY_THRESHOLD = 0.85
FLOW_MIN_NOTES = 12
FLOW_ON_TIME_TOLERANCE_MS = 50

# Harmonic analysis
MIN_NOTES_FOR_KEY = 5
MIN_CHORDS_FOR_KEY = 3
KEY_CONFIDENCE_THRESHOLD = 0.45
MODULATION_CHORD_COUNT = 3
RELATIVE_KEY_CONFIDENCE_FACTOR = 0.95
KEY_DETECTION_CHORD_WINDOW = 8

# Genre detection
PROGRESSION_WEIGHT = 0.4
SCALE_WEIGHT = 0.3
RHYTHM_WEIGHT = 0.2
VOICING_WEIGHT = 0.1
GENRE_CONFIDENCE_THRESHOLD = 0.25
GENRE_MIN_CHORDS = 3
GENRE_MIN_NOTES = 8
PATTERN_TAG_THRESHOLD = 0.3
PROGRESSION_WINDOW_FACTOR = 0.3
MAX_RHYTHM_IOI_MS = 2000
SWING_RATIO_RANGE = (1.3, 2.5)
STRAIGHT_RATIO_RANGE = (0.7, 1.3)
SWING_THRESHOLD = 0.4

# Tendencies / avoidance
MIN_NOTES_FOR_TENDENCIES = 200
MIN_CHORDS_FOR_TENDENCIES = 50
AVOIDANCE_KEY_THRESHOLD = 0.02
TEMPO_BUCKET_SIZE = 10
TEMPO_BUCKET_MIN = 40
TEMPO_BUCKET_MAX = 200
MAX_TRACKED_INTERVAL = 24  # two octaves
SUBDIVISION_TOLERANCE = 0.2
SUBDIVISION_MIN_SHARE = 0.15

# Accumulator capacities
ACCUMULATOR_MAX_NOTES = 2000
ACCUMULATOR_MAX_CHORDS = 500
