"""
Pulses: time-sampled tone clusters from performance data.

A pulse carries the tones sounding together at one sample point, with
loudness and instrument-part identity, but no scale anchoring and no
relations. Pulses are raw observations matched against ranges.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

from tonality.music.intervals import Interval
from tonality.music.notes import Note, add


@dataclass(frozen=True)
class SampledTone:
    """One tone observed in a pulse."""
    pitch: Note
    loudness: float = 1.0  # 0-1
    part: Optional[str] = None  # instrument-part identity

    def __post_init__(self) -> None:
        if not 0.0 <= self.loudness <= 1.0:
            raise ValueError(f"Loudness must be within 0-1, got {self.loudness}")


@dataclass(frozen=True)
class Pulse:
    """
    Cluster of simultaneous or near-simultaneous tones.

    ``sample_time`` is an opaque ordering key supplied by the caller
    (seconds, ticks, measure/beat tuples, ...).
    """
    tones: Tuple[SampledTone, ...] = field(default_factory=tuple)
    sample_time: Any = None

    def __post_init__(self) -> None:
        # Set semantics with a stable, pitch-ordered layout
        unique = dict.fromkeys(self.tones)
        ordered = tuple(sorted(unique, key=lambda t: (t.pitch.cents, t.part or "")))
        object.__setattr__(self, "tones", ordered)

    @classmethod
    def from_notes(
        cls,
        notes: Iterable[Union[Note, int, str]],
        sample_time: Any = None,
        loudness: float = 1.0,
        part: Optional[str] = None
    ) -> "Pulse":
        """
        Build a pulse from notes, MIDI numbers or note names.

        Args:
            notes: Sounding pitches
            sample_time: Ordering key
            loudness: Loudness applied to every tone
            part: Instrument part applied to every tone

        Returns:
            Pulse
        """
        tones = []
        for note in notes:
            if isinstance(note, str):
                note = Note.from_name(note)
            elif not isinstance(note, Note):
                note = Note(int(note))
            tones.append(SampledTone(note, loudness, part))
        return cls(tuple(tones), sample_time)

    @classmethod
    def from_frequencies(
        cls,
        frequencies: Iterable[float],
        sample_time: Any = None,
        loudness: Optional[Iterable[float]] = None,
        part: Optional[str] = None
    ) -> "Pulse":
        """
        Build a pulse from detected frequencies in Hz.

        Args:
            frequencies: Detected fundamentals
            sample_time: Ordering key
            loudness: Per-frequency loudness (defaults to 1.0 each)
            part: Instrument part applied to every tone

        Returns:
            Pulse whose notes keep their cent deviation
        """
        frequencies = list(frequencies)
        levels = [1.0] * len(frequencies) if loudness is None else list(loudness)
        if len(levels) != len(frequencies):
            raise ValueError(
                f"Got {len(levels)} loudness values for {len(frequencies)} frequencies"
            )
        tones = tuple(
            SampledTone(Note.from_frequency(f), level, part)
            for f, level in zip(frequencies, levels)
        )
        return cls(tones, sample_time)

    def notes(self) -> List[Note]:
        """Distinct sounding pitches, low to high."""
        return list(dict.fromkeys(tone.pitch for tone in self.tones))

    def transpose(self, interval: Interval) -> "Pulse":
        """Copy of this pulse with every tone moved by ``interval``."""
        return Pulse(
            tuple(SampledTone(add(t.pitch, interval), t.loudness, t.part) for t in self.tones),
            self.sample_time
        )

    @property
    def is_empty(self) -> bool:
        return not self.tones

    def __len__(self) -> int:
        return len(self.tones)

    def __iter__(self) -> Iterator[SampledTone]:
        return iter(self.tones)
