"""Harmony analysis - Roman numeral function and chord-tone classification.

Implements harmonic labelling with:
- Diatonic degree tables for major and natural minor keys
- Secondary dominant detection (V/x)
- Chromatic fallback labels (bII, bVI, bvii, ...)
- Chord-tone vs non-chord-tone classification of melody notes
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ..core import DetectedNote
from .chords import ChordQuality, DetectedChord
from .key import KeyCenter


@dataclass(frozen=True)
class HarmonicFunction:
    """Roman numeral analysis of a chord within a key."""

    roman_numeral: str  # "V", "vi", "V/V", "bVII", or "?" for unknown spellings
    quality: ChordQuality
    is_secondary_dominant: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "roman_numeral": self.roman_numeral,
            "quality": ChordQuality(self.quality).value,
            "is_secondary_dominant": self.is_secondary_dominant,
        }


@dataclass(frozen=True)
class NoteAnalysis:
    """A note classified against the chord sounding when it was played."""

    note: DetectedNote
    is_chord_tone: bool
    chord_context: Optional[DetectedChord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "note": self.note.to_dict(),
            "is_chord_tone": self.is_chord_tone,
            "chord_context": self.chord_context.to_dict() if self.chord_context else None,
        }


class HarmonyAnalyzer:
    """Label chords with their harmonic function in a key.

    A chord is diatonic only when both its root degree and its quality
    match the degree table; anything else is tried as a secondary
    dominant and finally given a chromatic label.
    """

    # Scale degree (semitones above tonic) -> (numeral, expected quality)
    MAJOR_DEGREES: Dict[int, Tuple[str, ChordQuality]] = {
        0: ("I", ChordQuality.MAJOR),
        2: ("ii", ChordQuality.MINOR),
        4: ("iii", ChordQuality.MINOR),
        5: ("IV", ChordQuality.MAJOR),
        7: ("V", ChordQuality.MAJOR),
        9: ("vi", ChordQuality.MINOR),
        11: ("vii°", ChordQuality.DIMINISHED),
    }

    MINOR_DEGREES: Dict[int, Tuple[str, ChordQuality]] = {
        0: ("i", ChordQuality.MINOR),
        2: ("ii°", ChordQuality.DIMINISHED),
        3: ("III", ChordQuality.MAJOR),
        5: ("iv", ChordQuality.MINOR),
        7: ("v", ChordQuality.MINOR),
        8: ("VI", ChordQuality.MAJOR),
        10: ("VII", ChordQuality.MAJOR),
    }

    CHROMATIC_NUMERALS = ["I", "bII", "II", "bIII", "III", "IV", "#IV", "V", "bVI", "VI", "bVII", "VII"]

    # Qualities written with an upper-case numeral
    UPPER_CASE_QUALITIES = (
        ChordQuality.MAJOR,
        ChordQuality.DOMINANT7,
        ChordQuality.MAJOR7,
        ChordQuality.AUGMENTED,
    )

    DOMINANT_QUALITIES = (ChordQuality.MAJOR, ChordQuality.DOMINANT7)

    UNKNOWN_NUMERAL = "?"

    def analyze(self, chord: DetectedChord, key: KeyCenter) -> HarmonicFunction:
        """
        Get the harmonic function of a chord in a key.

        Args:
            chord: Identified chord
            key: Key to analyze against

        Returns:
            HarmonicFunction ("?" numeral when a root cannot be spelled)
        """
        chord_pc = chord.root_pitch_class
        key_pc = key.root_pitch_class
        if chord_pc == -1 or key_pc == -1:
            return HarmonicFunction(self.UNKNOWN_NUMERAL, chord.quality)

        interval = (chord_pc - key_pc) % 12
        degrees = self.MINOR_DEGREES if key.mode == "minor" else self.MAJOR_DEGREES

        diatonic = degrees.get(interval)
        if diatonic is not None and diatonic[1] == chord.quality:
            return HarmonicFunction(diatonic[0], chord.quality)

        secondary = self._secondary_dominant(interval, chord.quality, degrees)
        if secondary is not None:
            return HarmonicFunction(secondary, chord.quality, is_secondary_dominant=True)

        return HarmonicFunction(self._chromatic_numeral(interval, chord.quality), chord.quality)

    def _secondary_dominant(
        self,
        interval: int,
        quality: ChordQuality,
        degrees: Dict[int, Tuple[str, ChordQuality]],
    ) -> Optional[str]:
        """
        Label a major/dominant 7th chord as V of the degree a fifth below it.

        The tonic is excluded as a target.
        """
        if quality not in self.DOMINANT_QUALITIES:
            return None

        target = (interval - 7) % 12
        if target == 0 or target not in degrees:
            return None

        return f"V/{degrees[target][0]}"

    def _chromatic_numeral(self, interval: int, quality: ChordQuality) -> str:
        numeral = self.CHROMATIC_NUMERALS[interval]
        if quality in self.UPPER_CASE_QUALITIES:
            return numeral
        return numeral.lower()

    def classify_note(
        self,
        note: DetectedNote,
        chord: Optional[DetectedChord],
    ) -> NoteAnalysis:
        """Classify a note as chord tone or non-chord tone."""
        if chord is None:
            return NoteAnalysis(note=note, is_chord_tone=False, chord_context=None)

        return NoteAnalysis(
            note=note,
            is_chord_tone=note.pitch_class in chord.pitch_classes,
            chord_context=chord,
        )


_analyzer = HarmonyAnalyzer()


def analyze_harmonic_function(chord: DetectedChord, key: KeyCenter) -> HarmonicFunction:
    """Get the roman numeral function of a chord in a key."""
    return _analyzer.analyze(chord, key)


def classify_note(note: DetectedNote, chord: Optional[DetectedChord]) -> NoteAnalysis:
    """Classify a note against the current chord (None means no chord context)."""
    return _analyzer.classify_note(note, chord)
