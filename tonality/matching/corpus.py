"""
Append-only range corpus.

Ranges accumulate per scale, optionally tagged with the song they came
from. Appends are serialized by a lock and publish a new immutable
snapshot; readers never lock and see either the old or the new
snapshot.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from tonality.core.logging import get_logger
from tonality.matching.phrase import PhraseBuffer
from tonality.music.ranges import Range
from tonality.music.scales import Scale

logger = get_logger(__name__)


@dataclass(frozen=True)
class CorpusEntry:
    """One inserted range with its partition keys."""
    scale_key: tuple
    song: Optional[str]
    range: Range


class RangeCorpus:
    """Shared, append-only store of known ranges."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Tuple[CorpusEntry, ...] = ()
        self._scales: Dict[tuple, Scale] = {}

    def add(self, scale: Scale, rng: Range, song: Optional[str] = None) -> Range:
        """
        Insert a range for a scale.

        The corpus stores a frozen copy anchored to ``scale``; the caller's
        range is left untouched.

        Args:
            scale: Scale partition
            rng: Range to insert
            song: Optional song tag

        Returns:
            The stored, frozen range
        """
        stored = rng.copy(scale=scale).freeze()
        entry = CorpusEntry(scale.key, song, stored)

        with self._lock:
            self._scales.setdefault(entry.scale_key, scale)
            self._entries = self._entries + (entry,)
            total = len(self._entries)

        logger.debug(
            "corpus_range_added",
            scale=scale.symbol,
            song=song,
            size=stored.size,
            total=total
        )
        return stored

    def extend(self, scale: Scale, ranges: Iterable[Range], song: Optional[str] = None) -> List[Range]:
        """Insert several ranges for one scale."""
        return [self.add(scale, rng, song) for rng in ranges]

    def absorb(self, buffer: PhraseBuffer, scale: Optional[Scale] = None) -> List[Range]:
        """
        Compose every buffered phrase into a range and insert it.

        Phrases without a scale or without any sounding pulse (rests) are
        skipped. All phrases are composed before the first insert, so a
        failure leaves the corpus unchanged.

        Args:
            buffer: Phrase buffer of one song
            scale: Scale to file unmatched phrases under; matched phrases
                use their own scale

        Returns:
            Stored ranges
        """
        composed = []
        skipped = 0
        for phrase in buffer.all_phrases():
            target = phrase.scale or scale
            if target is None or all(pulse.is_empty for pulse in phrase.pulses):
                skipped += 1
                continue
            composed.append((target, buffer.compose_range(target, phrase)))

        stored = [self.add(target, rng, buffer.song) for target, rng in composed]

        logger.info(
            "corpus_absorbed_song",
            song=buffer.song,
            ranges=len(stored),
            skipped_phrases=skipped
        )
        return stored

    def ranges(self, scale: Optional[Scale] = None, song: Optional[str] = None) -> Tuple[Range, ...]:
        """
        Snapshot of stored ranges in insertion order.

        Args:
            scale: Only ranges filed under this scale
            song: Only ranges tagged with this song
        """
        entries = self._entries
        key = None if scale is None else scale.key
        return tuple(
            e.range for e in entries
            if (key is None or e.scale_key == key) and (song is None or e.song == song)
        )

    def scales(self) -> List[Scale]:
        """Scales with at least one stored range, first-seen instance each."""
        with self._lock:
            return list(self._scales.values())

    def songs(self, scale: Optional[Scale] = None) -> List[str]:
        """Distinct song tags, in first-seen order."""
        key = None if scale is None else scale.key
        return list(dict.fromkeys(
            e.song for e in self._entries
            if e.song is not None and (key is None or e.scale_key == key)
        ))

    def __len__(self) -> int:
        return len(self._entries)
