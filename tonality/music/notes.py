"""
Pitch positions.

A note is a semitone number counted from a fixed reference (MIDI
numbering, so 60 is middle C) plus an optional cent adjustment. Notes
compare and hash by their absolute cent position, so a note spelled
``Note(61, -100)`` is pitch-equal to ``Note(60)``.
"""

import functools
import math
import re
from dataclasses import dataclass
from typing import Optional

import numpy as np

from tonality.core.config import settings
from tonality.music.intervals import CENTS_PER_SEMITONE, Interval, nearest_semitone

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

_NOTE_OFFSETS = {'C': 0, 'D': 2, 'E': 4, 'F': 5, 'G': 7, 'A': 9, 'B': 11}
_NAME_PATTERN = re.compile(
    r"^(?P<letter>[A-Ga-g])(?P<accidental>#{1,2}|b{1,2})?(?P<octave>-?\d+)"
    r"(?:(?P<cents>[+-]\d+(?:\.\d+)?)c)?$"
)

# Precision used for pitch equality and hashing (cents)
_CENT_DIGITS = 6


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Note:
    """Immutable pitch position with an optional cent adjustment."""

    number: int
    adjustment: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.number, bool) or int(self.number) != self.number:
            raise ValueError(f"Note number must be an integer, got {self.number!r}")
        if not math.isfinite(self.adjustment):
            raise ValueError(f"Note adjustment must be finite, got {self.adjustment!r}")
        object.__setattr__(self, "number", int(self.number))
        object.__setattr__(self, "adjustment", float(self.adjustment))

    @property
    def cents(self) -> float:
        """Absolute position in cents from the reference."""
        return self.number * CENTS_PER_SEMITONE + self.adjustment

    @property
    def pitch_class(self) -> int:
        """Pitch class (0-11, where 0=C) of the nearest semitone."""
        return self.nearest().number % 12

    @property
    def octave(self) -> int:
        """Scientific pitch octave of the nearest semitone (60 -> 4)."""
        return (self.nearest().number // 12) - 1

    @property
    def name(self) -> str:
        """Note name of the nearest semitone (e.g., 'C4', 'A#3')."""
        return f"{NOTE_NAMES[self.pitch_class]}{self.octave}"

    @property
    def frequency(self) -> float:
        """Frequency in Hz relative to the configured reference pitch."""
        midi = self.cents / CENTS_PER_SEMITONE
        return float(
            settings.reference_frequency
            * np.power(2.0, (midi - settings.reference_midi) / 12.0)
        )

    def nearest(self) -> "Note":
        """Fold the adjustment into the number, rounding halves away from zero."""
        return Note(nearest_semitone(self.cents))

    def distance(self, other: "Note") -> float:
        """Signed distance in cents from this note up to ``other``."""
        return other.cents - self.cents

    def interval_to(self, other: "Note") -> Interval:
        """Interval spelled from this note to ``other``."""
        return Interval.from_cents(self.distance(other))

    def transpose(self, interval: Interval, adjustment: Optional[float] = None) -> "Note":
        """Shorthand for :func:`add`."""
        return add(self, interval, adjustment)

    @classmethod
    def from_name(cls, name: str) -> "Note":
        """
        Parse a note name.

        Accepts sharps and flats (single or double) and an optional cent
        suffix, e.g. 'C4', 'Bb3', 'F##2', 'A4+12c', 'E4-30.5c'.

        Args:
            name: Note name

        Returns:
            Note

        Raises:
            ValueError: If the name cannot be parsed
        """
        match = _NAME_PATTERN.match(name.strip())
        if match is None:
            raise ValueError(f"Invalid note name: {name!r}")

        accidental = match.group("accidental") or ""
        shift = len(accidental) if accidental.startswith("#") else -len(accidental)
        octave = int(match.group("octave"))
        number = (octave + 1) * 12 + _NOTE_OFFSETS[match.group("letter").upper()] + shift
        cents = float(match.group("cents") or 0.0)
        return cls(number, cents)

    @classmethod
    def from_frequency(cls, frequency: float) -> "Note":
        """
        Convert a frequency to the nearest note, keeping the cent remainder.

        Args:
            frequency: Frequency in Hz

        Returns:
            Note whose adjustment holds the deviation from equal temperament
        """
        if frequency <= 0:
            raise ValueError(f"Frequency must be positive, got {frequency}")
        midi = settings.reference_midi + 12 * np.log2(frequency / settings.reference_frequency)
        number = nearest_semitone(midi * CENTS_PER_SEMITONE)
        return cls(number, float((midi - number) * CENTS_PER_SEMITONE))

    def _key(self) -> float:
        return round(self.cents, _CENT_DIGITS)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Note):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Note") -> bool:
        if not isinstance(other, Note):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        if self.adjustment:
            return f"{NOTE_NAMES[self.number % 12]}{self.number // 12 - 1}{self.adjustment:+g}c"
        return f"{NOTE_NAMES[self.number % 12]}{self.number // 12 - 1}"


def add(note: Note, interval: Interval, adjustment: Optional[float] = None) -> Note:
    """
    Advance a note by an interval.

    The interval's semitones move the note number; its cent remainder and
    the optional extra adjustment accumulate on the note's adjustment.

    Args:
        note: Starting note
        interval: Interval to add
        adjustment: Extra cents to apply

    Returns:
        New note
    """
    return Note(
        note.number + interval.semitones,
        note.adjustment + interval.cents + (adjustment or 0.0)
    )


def compare(a: Note, b: Note) -> int:
    """Order two notes by absolute cent position (-1, 0 or 1)."""
    if a == b:
        return 0
    return -1 if a < b else 1


MIDDLE_C = Note(60)
