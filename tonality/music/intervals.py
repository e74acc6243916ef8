"""
Interval arithmetic.

An interval is a signed pitch delta spelled as whole semitones plus a
cent remainder. Two intervals of equal width but different spelling
(e.g. a major second lowered by 100 cents and a minor second) are
distinct values.
"""

import math
from dataclasses import dataclass
from typing import Dict

from tonality.core.exceptions import InvalidIntervalError

CENTS_PER_SEMITONE = 100
CENTS_PER_OCTAVE = 1200


def nearest_semitone(cents: float) -> int:
    """Nearest whole semitone to a cent value, rounding halves away from zero."""
    sign = -1 if cents < 0 else 1
    return sign * int(math.floor(abs(cents) / CENTS_PER_SEMITONE + 0.5))


def _reverses_direction(semitones: int, width: float) -> bool:
    return semitones != 0 and width != 0 and (width > 0) != (semitones > 0)


@dataclass(frozen=True)
class Interval:
    """Immutable semitone-plus-cents delta between two pitches."""

    semitones: int
    cents: float = 0.0

    def __post_init__(self) -> None:
        if isinstance(self.semitones, bool) or int(self.semitones) != self.semitones:
            raise InvalidIntervalError(
                f"Interval semitones must be an integer, got {self.semitones!r}"
            )
        if not math.isfinite(self.cents):
            raise InvalidIntervalError(f"Interval cents must be finite, got {self.cents!r}")

        object.__setattr__(self, "semitones", int(self.semitones))
        object.__setattr__(self, "cents", float(self.cents))

        # The cent remainder may bend the spelling but never reverse its direction
        width = self.width
        if _reverses_direction(self.semitones, width):
            raise InvalidIntervalError(
                f"Interval of {self.semitones} semitones with {self.cents} cents "
                f"has inconsistent direction (width {width} cents)"
            )

    @property
    def width(self) -> float:
        """Total width in cents."""
        return self.semitones * CENTS_PER_SEMITONE + self.cents

    @property
    def is_ascending(self) -> bool:
        return self.width > 0

    @property
    def is_descending(self) -> bool:
        return self.width < 0

    @classmethod
    def from_cents(cls, cents: float) -> "Interval":
        """
        Spell a width in cents as the nearest whole semitones plus remainder.

        Rounds half away from zero so that the remainder never flips the
        direction of the interval.

        Args:
            cents: Signed interval width

        Returns:
            Interval with the same total width
        """
        semitones = nearest_semitone(cents)
        return cls(semitones, cents - semitones * CENTS_PER_SEMITONE)

    def rounded(self) -> "Interval":
        """Return the nearest whole-semitone interval with no cent remainder."""
        return Interval(Interval.from_cents(self.width).semitones)

    def equals_ignore_direction(self, other: "Interval") -> bool:
        """Check whether both intervals span the same distance in either direction."""
        return (
            abs(self.semitones) == abs(other.semitones)
            and math.isclose(abs(self.width), abs(other.width))
        )

    def __add__(self, other: "Interval") -> "Interval":
        """
        Sum of two intervals.

        Keeps the summed spelling unless its cents would reverse the
        direction of the semitones; such sums are respelled from their
        total width.
        """
        if not isinstance(other, Interval):
            return NotImplemented
        semitones = self.semitones + other.semitones
        cents = self.cents + other.cents
        if _reverses_direction(semitones, semitones * CENTS_PER_SEMITONE + cents):
            return Interval.from_cents(semitones * CENTS_PER_SEMITONE + cents)
        return Interval(semitones, cents)

    def __neg__(self) -> "Interval":
        return Interval(-self.semitones, -self.cents)

    def __str__(self) -> str:
        if self.cents:
            return f"{self.semitones:+d}st{self.cents:+g}c"
        return f"{self.semitones:+d}st"


def width_in_cents(interval: Interval) -> float:
    """Total width of an interval in cents."""
    return interval.width


# Standard twelve-tone intervals
UNISON = Interval(0)
MINOR_SECOND = Interval(1)
MAJOR_SECOND = Interval(2)
MINOR_THIRD = Interval(3)
MAJOR_THIRD = Interval(4)
PERFECT_FOURTH = Interval(5)
TRITONE = Interval(6)
PERFECT_FIFTH = Interval(7)
MINOR_SIXTH = Interval(8)
MAJOR_SIXTH = Interval(9)
MINOR_SEVENTH = Interval(10)
MAJOR_SEVENTH = Interval(11)
OCTAVE = Interval(12)

INTERVALS: Dict[str, Interval] = {
    'unison': UNISON,
    'minor_second': MINOR_SECOND,
    'major_second': MAJOR_SECOND,
    'minor_third': MINOR_THIRD,
    'major_third': MAJOR_THIRD,
    'perfect_fourth': PERFECT_FOURTH,
    'tritone': TRITONE,
    'perfect_fifth': PERFECT_FIFTH,
    'minor_sixth': MINOR_SIXTH,
    'major_sixth': MAJOR_SIXTH,
    'minor_seventh': MINOR_SEVENTH,
    'major_seventh': MAJOR_SEVENTH,
    'octave': OCTAVE,
}
