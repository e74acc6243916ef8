"""
Tonal spectra.

A spectrum is a set of candidate tones, usually given as approximate
frequencies, describing a pitch region. Systematic scales derive the
ranges that bridge two spectra.
"""

from typing import Iterable, Optional, Tuple, Union

import numpy as np

from tonality.core.config import settings
from tonality.music.notes import Note

ToneLike = Union[Note, float, int]


class Spectrum:
    """A region of candidate tones with a cent tolerance."""

    def __init__(
        self,
        tones: Iterable[ToneLike],
        tolerance_cents: Optional[float] = None,
        label: Optional[str] = None
    ):
        """
        Initialize a spectrum.

        Args:
            tones: Notes, or frequencies in Hz
            tolerance_cents: Maximum distance from a member tone for a note
                to count as inside the spectrum
            label: Optional descriptive label
        """
        self.notes: Tuple[Note, ...] = tuple(
            tone if isinstance(tone, Note) else Note.from_frequency(float(tone))
            for tone in tones
        )
        self.tolerance_cents = (
            settings.spectrum_tolerance_cents if tolerance_cents is None else tolerance_cents
        )
        if self.tolerance_cents < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.tolerance_cents}")
        self.label = label
        self._cents = np.array([note.cents for note in self.notes], dtype=np.float64)

    @classmethod
    def from_frequencies(
        cls,
        frequencies: Iterable[float],
        tolerance_cents: Optional[float] = None,
        label: Optional[str] = None
    ) -> "Spectrum":
        """Build a spectrum from frequencies in Hz."""
        return cls([float(f) for f in frequencies], tolerance_cents, label)

    def contains(self, note: Note) -> bool:
        """Check whether a note falls inside this spectrum."""
        if self._cents.size == 0:
            return False
        return bool(np.min(np.abs(self._cents - note.cents)) <= self.tolerance_cents + 1e-9)

    def __contains__(self, note: object) -> bool:
        return isinstance(note, Note) and self.contains(note)

    def __len__(self) -> int:
        return len(self.notes)

    def __iter__(self):
        return iter(self.notes)

    @property
    def low(self) -> Optional[Note]:
        """Lowest member tone."""
        return min(self.notes) if self.notes else None

    @property
    def high(self) -> Optional[Note]:
        """Highest member tone."""
        return max(self.notes) if self.notes else None

    def __repr__(self) -> str:
        members = ", ".join(str(n) for n in self.notes)
        return f"Spectrum([{members}], tolerance_cents={self.tolerance_cents})"
