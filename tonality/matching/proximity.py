"""
Modulation proximity.

Numeric closeness of two pitches, used to score pulse tones against
range tones. Proximity is taken on the directed distance folded into one
octave, so unison and octave are equivalent (proximity 1).

Up to the minor seventh the curve follows a band table anchored on the
twelve-tone intervals and linearly interpolated between them; the
ordering fifth > fourth > major third > minor seventh is the contract,
the values are tunable. Beyond the minor seventh a raised-cosine tail
decays smoothly to full separability (0) at the octave boundary.
"""

from typing import Dict

import numpy as np

from tonality.music.intervals import CENTS_PER_OCTAVE

# Proximity per interval, in semitones above the reference tone
MODULATION_BANDS: Dict[int, float] = {
    0: 1.00,   # Unison / octave
    1: 0.20,   # Minor second
    2: 0.30,   # Major second
    3: 0.60,   # Minor third
    4: 0.70,   # Major third
    5: 0.80,   # Perfect fourth
    6: 0.25,   # Tritone
    7: 0.90,   # Perfect fifth
    8: 0.55,   # Minor sixth
    9: 0.60,   # Major sixth
    10: 0.40,  # Minor seventh
}

TAIL_START_CENTS = 1000.0  # minor seventh

_BAND_CENTS = np.array([s * 100.0 for s in sorted(MODULATION_BANDS)], dtype=np.float64)
_BAND_VALUES = np.array([MODULATION_BANDS[s] for s in sorted(MODULATION_BANDS)], dtype=np.float64)


def fold_cents(cents: float) -> float:
    """Fold a directed distance into [0, 1200)."""
    folded = float(np.mod(cents, CENTS_PER_OCTAVE))
    if np.isclose(folded, CENTS_PER_OCTAVE):
        return 0.0
    return folded


def modulation_proximity(cents: float, unison_tolerance: float = 0.0) -> float:
    """
    Proximity of a directed pitch distance.

    Args:
        cents: Distance from the reference tone in cents (any sign or size)
        unison_tolerance: Distances within this many cents of an octave
            multiple count as unison

    Returns:
        Proximity in [0, 1]
    """
    folded = fold_cents(cents)
    if min(folded, CENTS_PER_OCTAVE - folded) <= unison_tolerance:
        return 1.0

    if folded <= TAIL_START_CENTS:
        return float(np.interp(folded, _BAND_CENTS, _BAND_VALUES))

    span = CENTS_PER_OCTAVE - TAIL_START_CENTS
    phase = (folded - TAIL_START_CENTS) / span
    return float(_BAND_VALUES[-1] * 0.5 * (1.0 + np.cos(np.pi * phase)))


def pitch_class_distance(a_cents: float, b_cents: float) -> float:
    """Octave-equivalent distance between two pitches, in [0, 600]."""
    folded = fold_cents(b_cents - a_cents)
    return min(folded, CENTS_PER_OCTAVE - folded)
