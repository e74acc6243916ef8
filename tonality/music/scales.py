"""
Musical scales.

A scale is an ordered sequence of intervals anchored at a root note,
with an independent cent adjustment per step. Degrees are generated
lazily from the cumulative walk over intervals plus adjustments.

Canonical presets are plain data (``SCALES``) looked up by name; the
shared instances are tagged *standard* and are immutable. Scales tagged
*systematic* own a register space: registers below the degree count
hold single-tone degree ranges, and composite ranges may be registered
above them and found again through :meth:`Scale.derive_ranges`.
"""

import threading
from collections.abc import Sequence as SequenceABC
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from tonality.core.exceptions import (
    ImmutableError,
    IndexOutOfRangeError,
    InvalidIntervalError,
    RegisterCollisionError,
    UnknownScaleError,
    UnsupportedOperationError,
)
from tonality.core.logging import get_logger
from tonality.music.intervals import MAJOR_SECOND, MINOR_SECOND, Interval
from tonality.music.notes import Note, add
from tonality.music.ranges import Range
from tonality.music.spectrum import Spectrum

logger = get_logger(__name__)

# Rootless scales are templates measured from this reference pitch
TEMPLATE_ROOT = Note(0)

Adjustment = Optional[float]
RootLike = Union[Note, int, str]


class DegreeSequence(SequenceABC):
    """Lazy, restartable view over a scale's degrees."""

    def __init__(self, scale: "Scale"):
        self._scale = scale

    def __len__(self) -> int:
        return self._scale.size

    def __getitem__(self, i):
        if isinstance(i, slice):
            return [self._scale.degree(j) for j in range(*i.indices(len(self)))]
        if i < 0:
            i += len(self)
        return self._scale.degree(i)

    def __iter__(self) -> Iterator[Note]:
        note = self._scale.anchor
        yield note
        for i, interval in enumerate(self._scale.intervals):
            note = add(note, interval, self._scale.adjustment(i))
            yield note


class Scale:
    """Represents a musical scale."""

    def __init__(
        self,
        symbol: Optional[str] = None,
        root: Optional[Note] = None,
        intervals: Sequence[Interval] = (),
        adjustments: Optional[Sequence[Adjustment]] = None,
        *,
        standard: bool = False,
        systematic: bool = False
    ):
        """
        Initialize a scale.

        Args:
            symbol: Scale name or symbol
            root: Root note; None makes the scale a template
            intervals: Steps from each degree to the next
            adjustments: Per-step cent adjustments, padded with None to the
                length of ``intervals``; None marks an unadjusted step
            standard: Tag the scale as a canonical, immutable preset
            systematic: Give the scale a register space for composite ranges

        Raises:
            InvalidIntervalError: If a step is not an Interval
            ValueError: If a non-null adjustment has no matching step
        """
        for interval in intervals:
            if not isinstance(interval, Interval):
                raise InvalidIntervalError(f"Expected Interval, got {interval!r}")

        self.symbol = symbol
        self._root = root
        self._intervals: Tuple[Interval, ...] = tuple(intervals)
        self._adjustments: Tuple[Adjustment, ...] = _pad_adjustments(
            () if adjustments is None else adjustments, len(self._intervals)
        )
        self._standard = standard
        self._systematic = systematic or standard

        self._degree_ranges: Dict[int, Range] = {}
        self._registers: Dict[int, Range] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_notes(cls, *notes: Note, symbol: Optional[str] = None, systematic: bool = False) -> "Scale":
        """
        Build a scale from a literal note sequence.

        Steps are rounded to the nearest semitone and the remainder is
        folded into the step adjustments, so each degree reproduces the
        given note.

        Args:
            notes: Notes from the root upward (or downward)
            symbol: Optional scale symbol
            systematic: Give the scale a register space

        Returns:
            Scale rooted at the first note
        """
        if not notes:
            raise ValueError("A scale needs at least a root note")

        intervals = []
        adjustments = []
        for prev, note in zip(notes, notes[1:]):
            step = prev.interval_to(note)
            intervals.append(Interval(step.semitones))
            adjustments.append(step.cents)

        return cls(symbol, notes[0], intervals, adjustments, systematic=systematic)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def root(self) -> Optional[Note]:
        return self._root

    @root.setter
    def root(self, root: Optional[Note]) -> None:
        if self._standard:
            raise ImmutableError(f"Standard scale {self.symbol} cannot be re-rooted")
        with self._lock:
            self._root = root
            self._degree_ranges.clear()

    @property
    def anchor(self) -> Note:
        """Root note, or the template reference for rootless scales."""
        return TEMPLATE_ROOT if self._root is None else self._root

    @property
    def intervals(self) -> Tuple[Interval, ...]:
        return self._intervals

    @property
    def adjustments(self) -> Tuple[Adjustment, ...]:
        return self._adjustments

    @property
    def size(self) -> int:
        """Degree count: the root plus one degree per interval."""
        return len(self._intervals) + 1

    @property
    def key(self) -> tuple:
        """Value identity used to partition corpora by scale."""
        root = None if self._root is None else round(self._root.cents, 6)
        steps = tuple(
            (iv.semitones, round(iv.cents + self.adjustment(i), 6))
            for i, iv in enumerate(self._intervals)
        )
        return (self.symbol, root, steps)

    def adjustment(self, i: int) -> float:
        """Cent adjustment for step ``i`` (0 when absent)."""
        if i < len(self._adjustments) and self._adjustments[i] is not None:
            return self._adjustments[i]
        return 0.0

    def is_standard(self) -> bool:
        return self._standard

    def is_systematic(self) -> bool:
        return self._systematic

    # ------------------------------------------------------------------
    # Degrees
    # ------------------------------------------------------------------

    def degree(self, i: int) -> Note:
        """
        Get the note for a scale degree.

        Degree 0 is the root; degree ``i`` is the root advanced by the
        intervals before it plus their adjustments.

        Args:
            i: Degree index (0 to ``size - 1``)

        Returns:
            Degree note

        Raises:
            IndexOutOfRangeError: If ``i`` is outside the degree count
        """
        if not 0 <= i < self.size:
            raise IndexOutOfRangeError(
                f"Degree {i} out of range for scale with {self.size} degrees"
            )
        note = self.anchor
        for k in range(i):
            note = add(note, self._intervals[k], self.adjustment(k))
        return note

    def produce_degrees(self) -> DegreeSequence:
        """Lazy sequence of all degrees; every call yields a fresh walk."""
        return DegreeSequence(self)

    def __iter__(self) -> Iterator[Note]:
        return iter(self.produce_degrees())

    def __len__(self) -> int:
        return self.size

    def _positions(self, semitones_only: bool = False) -> np.ndarray:
        if semitones_only:
            steps = [iv.rounded().semitones * 100.0 for iv in self._intervals]
        else:
            steps = [iv.width + self.adjustment(i) for i, iv in enumerate(self._intervals)]
        return np.concatenate([[0.0], np.cumsum(np.asarray(steps, dtype=np.float64))])

    def total_width_cents(self) -> float:
        """
        Peak-to-trough span of the walk from the root, in cents.

        Adjustments may turn a step backward past an earlier degree, so the
        span is max minus min of the running sums rather than their total.
        """
        positions = self._positions()
        return float(positions.max() - positions.min())

    def length(self) -> int:
        """Peak-to-trough span in whole semitones, ignoring adjustments."""
        positions = self._positions(semitones_only=True)
        return int(round((positions.max() - positions.min()) / 100.0))

    # ------------------------------------------------------------------
    # Shape queries
    # ------------------------------------------------------------------

    def is_ascending(self) -> bool:
        widths = [iv.width for iv in self._intervals]
        return all(w >= 0 for w in widths) and sum(widths) > 0

    def is_descending(self) -> bool:
        widths = [iv.width for iv in self._intervals]
        return all(w <= 0 for w in widths) and sum(widths) < 0

    def is_chromatic(self) -> bool:
        """Twelve equal half steps in one direction."""
        if len(self._intervals) != 12 or not self._intervals[0].equals_ignore_direction(MINOR_SECOND):
            return False
        return all(iv == self._intervals[0] for iv in self._intervals)

    def is_diatonic(self) -> bool:
        """
        Seven whole or half steps in one direction, with the two half steps
        separated by two or three whole steps.
        """
        if len(self._intervals) != 7:
            return False

        direction = np.sign(self._intervals[0].width)
        half_steps = []
        for i, interval in enumerate(self._intervals):
            if np.sign(interval.width) != direction:
                return False
            if interval.equals_ignore_direction(MINOR_SECOND):
                half_steps.append(i)
            elif not interval.equals_ignore_direction(MAJOR_SECOND):
                return False

        return len(half_steps) == 2 and half_steps[1] - half_steps[0] - 1 in (2, 3)

    def has_equal_intervals(self, other: "Scale") -> bool:
        """Same step widths in the same order (adjustments ignored)."""
        if other is None or len(self._intervals) != len(other._intervals):
            return False
        return all(
            np.isclose(a.width, b.width) for a, b in zip(self._intervals, other._intervals)
        )

    def has_equal_interval_sequence(self, other: "Scale", start: Optional[int] = None) -> bool:
        """
        Check whether ``other`` steps like this scale read from some degree,
        i.e. whether the two are modes of one another.

        Args:
            other: Scale to compare
            start: Only test the rotation starting at this step
        """
        if other is None or len(self._intervals) != len(other._intervals) or not self._intervals:
            return False

        n = len(self._intervals)
        starts = range(n) if start is None else [start % n]
        for s in starts:
            if all(
                np.isclose(self._intervals[(s + j) % n].width, other._intervals[j].width)
                for j in range(n)
            ):
                return True
        return False

    def index_of(self, note: Note, ignore_octave: bool = False) -> int:
        """
        First degree matching a note.

        Args:
            note: Note to look for
            ignore_octave: Match by pitch class position within the octave

        Returns:
            Degree index

        Raises:
            IndexOutOfRangeError: If no degree matches
        """
        for i, degree in enumerate(self.produce_degrees()):
            if degree == note:
                return i
            offset = (degree.cents - note.cents) % 1200.0
            if ignore_octave and np.isclose(min(offset, 1200.0 - offset), 0.0):
                return i
        raise IndexOutOfRangeError(f"{note} is not a degree of {self}")

    def contains(self, note: Note, ignore_octave: bool = False) -> bool:
        try:
            self.index_of(note, ignore_octave)
        except IndexOutOfRangeError:
            return False
        return True

    # ------------------------------------------------------------------
    # Derived scales
    # ------------------------------------------------------------------

    def clone(self) -> "Scale":
        """
        Deep copy of the scale.

        Rootless standard presets are shared and return themselves.
        """
        if self._standard and self._root is None:
            return self

        scale = Scale(
            self.symbol,
            None if self._root is None else Note(self._root.number, self._root.adjustment),
            self._intervals,
            list(self._adjustments),
            standard=self._standard,
            systematic=self._systematic
        )
        registers = self._registers
        scale._registers = {
            register: rng.copy(scale=scale).freeze()
            for register, rng in registers.items()
        }
        return scale

    def with_root(self, root: RootLike) -> "Scale":
        """Copy of this scale anchored at ``root``; keeps capability tags."""
        scale = Scale(
            self.symbol,
            _as_note(root),
            self._intervals,
            list(self._adjustments),
            standard=self._standard,
            systematic=self._systematic
        )
        return scale

    def adjusted(self, *adjustments: Adjustment) -> "Scale":
        """Copy of this scale with new step adjustments; never standard."""
        return Scale(
            self.symbol,
            self._root,
            self._intervals,
            adjustments,
            systematic=self._systematic
        )

    def transpose(self, interval: Interval) -> "Scale":
        """Copy of this scale with its root moved by ``interval``."""
        return self.with_root(add(self.anchor, interval))

    # ------------------------------------------------------------------
    # Register space
    # ------------------------------------------------------------------

    def range_at(self, register: int) -> Range:
        """
        Range stored at a register.

        Registers below the degree count hold single-tone degree ranges,
        built on first use. Higher registers hold registered composites.

        Raises:
            IndexOutOfRangeError: If the register is empty
        """
        if 0 <= register < self.size:
            rng = self._degree_ranges.get(register)
            if rng is None:
                with self._lock:
                    rng = self._degree_ranges.get(register)
                    if rng is None:
                        rng = Range.single(self, register).freeze()
                        self._degree_ranges[register] = rng
            return rng

        rng = self._registers.get(register)
        if rng is None:
            raise IndexOutOfRangeError(f"Register {register} is empty")
        return rng

    def registers(self) -> Dict[int, Range]:
        """Snapshot of the composite registers."""
        return dict(self._registers)

    def register(self, rng: Range, register: Optional[int] = None) -> int:
        """
        Register a composite range above the degree registers.

        The range is frozen once registered, so a range can hold only one
        register; register a copy to file the same content twice.

        Args:
            rng: Unfrozen range anchored to this scale
            register: Register number; defaults to the next free one

        Returns:
            Register number assigned

        Raises:
            UnsupportedOperationError: If the scale is not systematic
            ImmutableError: If the scale is a standard preset, or the range
                is frozen (already registered or stored)
            RegisterCollisionError: If the register is reserved or taken
        """
        if not self._systematic:
            raise UnsupportedOperationError(f"Scale {self.symbol} is not systematic")
        if self._standard:
            raise ImmutableError(f"Standard scale {self.symbol} cannot register ranges")
        if rng.scale is not self:
            raise ValueError("Range is anchored to a different scale")

        with self._lock:
            if rng.frozen:
                raise ImmutableError(
                    f"Range is frozen (register {rng.register}); register a copy instead"
                )
            if register is None:
                register = max([self.size - 1, *self._registers]) + 1
            if register < self.size:
                raise RegisterCollisionError(
                    f"Register {register} is reserved for scale degrees (0-{self.size - 1})"
                )
            if register in self._registers:
                raise RegisterCollisionError(f"Register {register} is already taken")

            rng.register = register
            rng.freeze()
            # Readers iterate the published dict without locking
            self._registers = {**self._registers, register: rng}

        logger.debug("range_registered", scale=self.symbol, register=register, size=rng.size)
        return register

    def derive_ranges(self, spectrum_a: Spectrum, spectrum_b: Spectrum) -> List[Range]:
        """
        Ranges of this scale bridging two spectra.

        Returns every range in the register space, in register order, with
        at least one tone inside each spectrum.

        Raises:
            UnsupportedOperationError: If the scale is not systematic
        """
        if not self._systematic:
            raise UnsupportedOperationError(f"Scale {self.symbol} is not systematic")

        registers = self._registers
        candidates = [self.range_at(r) for r in range(self.size)]
        candidates.extend(rng for _, rng in sorted(registers.items()))

        bridges = [
            rng for rng in candidates
            if any(spectrum_a.contains(t) for t in rng.tones)
            and any(spectrum_b.contains(t) for t in rng.tones)
        ]

        logger.debug(
            "ranges_derived",
            scale=self.symbol,
            candidates=len(candidates),
            bridges=len(bridges)
        )
        return bridges

    def __repr__(self) -> str:
        root = "" if self._root is None else f" {self._root}"
        tags = [t for t, on in (("standard", self._standard), ("systematic", self._systematic)) if on]
        return f"Scale({self.symbol or ''}{root}, steps={len(self._intervals)}, {'/'.join(tags) or 'plain'})"

    def __str__(self) -> str:
        root = "" if self._root is None else f"{self._root} "
        return f"{root}{self.symbol or 'scale'}"


def _pad_adjustments(adjustments: Sequence[Adjustment], steps: int) -> Tuple[Adjustment, ...]:
    values = [None if a is None else float(a) for a in adjustments]
    extra = [a for a in values[steps:] if a is not None]
    if extra:
        raise ValueError(
            f"Got {len(values)} adjustments for {steps} intervals; "
            f"trailing entries must be None, got {extra}"
        )
    values = values[:steps]
    return tuple(values + [None] * (steps - len(values)))


def _as_note(root: RootLike) -> Note:
    if isinstance(root, Note):
        return root
    if isinstance(root, str):
        return Note.from_name(root)
    return Note(int(root))


# Canonical presets as semitone steps from the root
SCALES: Dict[str, List[int]] = {
    'chromatic': [1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1],
    'major': [2, 2, 1, 2, 2, 2, 1],
    'dorian': [2, 1, 2, 2, 2, 1, 2],
    'phrygian': [1, 2, 2, 2, 1, 2, 2],
    'lydian': [2, 2, 2, 1, 2, 2, 1],
    'mixolydian': [2, 2, 1, 2, 2, 1, 2],
    'minor': [2, 1, 2, 2, 1, 2, 2],
    'locrian': [1, 2, 2, 1, 2, 2, 2],
    'whole_tone': [2, 2, 2, 2, 2, 2],
    'major_pentatonic': [2, 2, 3, 2, 3],
    'minor_pentatonic': [3, 2, 2, 3, 2],
    'egyptian': [2, 3, 2, 3, 2],
    'blues_major': [2, 3, 2, 2, 3],
    'blues_minor': [3, 2, 3, 2, 2],
}

ALIASES: Dict[str, str] = {
    'ionian': 'major',
    'aeolian': 'minor',
    'natural_minor': 'minor',
    'suspended_pentatonic': 'egyptian',
}

_CANONICAL: Dict[str, Scale] = {
    name: Scale(
        ''.join(part.capitalize() for part in name.split('_')),
        None,
        [Interval(step) for step in steps],
        standard=True
    )
    for name, steps in SCALES.items()
}


def _normalize_name(name: str) -> str:
    key = name.strip().lower().replace('-', '_').replace(' ', '_')
    if key not in SCALES and key.replace('_', '') in {k.replace('_', '') for k in SCALES}:
        key = next(k for k in SCALES if k.replace('_', '') == key.replace('_', ''))
    return ALIASES.get(key, key)


def get_scale(
    name: str,
    root: Optional[RootLike] = None,
    systematic: bool = False
) -> Scale:
    """
    Get a scale preset by name.

    Args:
        name: Preset name (e.g. 'major', 'WholeTone', 'blues minor')
        root: Root note, MIDI number or note name; None returns the shared
            rootless preset
        systematic: Return a private systematic copy that accepts
            registered ranges

    Returns:
        Scale

    Raises:
        UnknownScaleError: If the preset is not found
    """
    key = _normalize_name(name)
    if key not in _CANONICAL:
        raise UnknownScaleError(f"Unknown scale: {name}. Available: {list(SCALES.keys())}")

    canonical = _CANONICAL[key]
    if systematic:
        return Scale(
            canonical.symbol,
            None if root is None else _as_note(root),
            canonical.intervals,
            systematic=True
        )
    if root is None:
        return canonical
    return canonical.with_root(root)
