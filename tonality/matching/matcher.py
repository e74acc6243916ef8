"""
Pulse-to-range matching.

Scores a pulse against candidate ranges by combining two parts:

- pitch proximity: for every pulse tone, the best modulation proximity
  to any range tone, averaged with loudness weights;
- structural distance: pulse tones without a pitch-class counterpart
  among the range events reachable from the pulse's anchor sub-range
  (the anchor sub-range or its neighbours, the reach of one stretch or
  appearance), normalized by range size.

Matching fails closed: when nothing reaches the threshold the result is
empty, meaning "no known pattern".
"""

from typing import TYPE_CHECKING, Iterable, List, NamedTuple, Optional

import numpy as np

from tonality.core.config import settings
from tonality.core.logging import get_logger
from tonality.matching.proximity import modulation_proximity, pitch_class_distance
from tonality.matching.pulse import Pulse
from tonality.music.ranges import Range

if TYPE_CHECKING:
    from tonality.matching.phrase import PhraseBuffer

logger = get_logger(__name__)

# Score precision used when comparing for ties
_SCORE_DIGITS = 9


class RangeMatch(NamedTuple):
    """A candidate range with its match score."""
    range: Range
    score: float


class Matcher:
    """
    Correlates pulses against known ranges.

    Holds only configuration; phrase state lives in a PhraseBuffer passed
    in by the caller.
    """

    def __init__(
        self,
        threshold: Optional[float] = None,
        pitch_weight: Optional[float] = None,
        tolerance_cents: Optional[float] = None,
        unison_tolerance: Optional[float] = None
    ):
        """
        Initialize matcher.

        Args:
            threshold: Default minimum score for match()
            pitch_weight: Weight of pitch proximity (0-1); structure gets the rest
            tolerance_cents: Pitch-class tolerance for structural counterparts
            unison_tolerance: Octave-multiple tolerance for proximity
        """
        self.threshold = settings.match_threshold if threshold is None else threshold
        self.pitch_weight = settings.pitch_weight if pitch_weight is None else pitch_weight
        self.tolerance_cents = (
            settings.pitch_tolerance_cents if tolerance_cents is None else tolerance_cents
        )
        self.unison_tolerance = (
            settings.unison_tolerance_cents if unison_tolerance is None else unison_tolerance
        )

        if not 0.0 <= self.pitch_weight <= 1.0:
            raise ValueError(f"pitch_weight must be within 0-1, got {self.pitch_weight}")

        logger.debug(
            "matcher_initialized",
            threshold=self.threshold,
            pitch_weight=self.pitch_weight,
            tolerance_cents=self.tolerance_cents
        )

    def pitch_proximity(self, pulse: Pulse, candidate: Range) -> float:
        """Loudness-weighted mean of each pulse tone's best proximity to the range."""
        if pulse.is_empty:
            return 0.0

        best = np.array([
            max(
                modulation_proximity(tone.pitch.cents - note.cents, self.unison_tolerance)
                for note in candidate.tones
            )
            for tone in pulse.tones
        ])
        weights = np.array([tone.loudness for tone in pulse.tones])
        if weights.sum() <= 0:
            return float(best.mean())
        return float(np.average(best, weights=weights))

    def structural_distance(self, pulse: Pulse, candidate: Range) -> float:
        """Share of pulse tones lacking a relation-compatible counterpart (0-1)."""
        if candidate.size == 0:
            return 1.0

        events = candidate.events
        counterparts = [
            [
                index for index, event in enumerate(events)
                if pitch_class_distance(
                    tone.pitch.cents, candidate.tones[event.tone].cents
                ) <= self.tolerance_cents
            ]
            for tone in pulse.tones
        ]

        segment_hits = np.zeros(events[-1].segment + 1, dtype=np.int64)
        for indices in counterparts:
            for segment in {events[i].segment for i in indices}:
                segment_hits[segment] += 1
        anchor = int(np.argmax(segment_hits))

        unmatched = sum(
            1 for indices in counterparts
            if not any(abs(events[i].segment - anchor) <= 1 for i in indices)
        )
        return min(1.0, unmatched / candidate.size)

    def score(self, pulse: Pulse, candidate: Range) -> float:
        """
        Proximity score of a pulse against a candidate range.

        Args:
            pulse: Sampled tone cluster
            candidate: Range to compare with

        Returns:
            Score in [0, 1]
        """
        if pulse.is_empty or candidate.size == 0:
            return 0.0

        pitch = self.pitch_proximity(pulse, candidate)
        structure = 1.0 - self.structural_distance(pulse, candidate)
        value = self.pitch_weight * pitch + (1.0 - self.pitch_weight) * structure
        return float(np.clip(value, 0.0, 1.0))

    def match(
        self,
        pulse: Pulse,
        ranges: Iterable[Range],
        threshold: Optional[float] = None,
        buffer: Optional["PhraseBuffer"] = None
    ) -> List[RangeMatch]:
        """
        Rank candidate ranges for a pulse.

        Sorted by descending score; ties prefer ranges of the scale most
        recently matched in ``buffer`` (same song), then smaller ranges.
        Ranges scoring below the threshold are dropped, so an empty list
        means no known pattern.

        Args:
            pulse: Sampled tone cluster
            ranges: Candidate ranges in corpus order
            threshold: Minimum score; defaults to the matcher threshold
            buffer: Phrase buffer supplying and receiving match history

        Returns:
            Ranked matches
        """
        threshold = self.threshold if threshold is None else threshold
        recent = None if buffer is None else buffer.last_scale_key

        matches = [
            RangeMatch(candidate, value)
            for candidate, value in ((c, self.score(pulse, c)) for c in ranges)
            if value >= threshold
        ]
        matches.sort(
            key=lambda m: (
                -round(m.score, _SCORE_DIGITS),
                0 if recent is not None and m.range.scale.key == recent else 1,
                m.range.size,
            )
        )

        if matches:
            logger.debug(
                "pulse_matched",
                sample_time=pulse.sample_time,
                candidates=len(matches),
                best_score=matches[0].score
            )
        else:
            logger.debug("pulse_unmatched", sample_time=pulse.sample_time, threshold=threshold)

        if buffer is not None:
            buffer.push(pulse, matches)
        return matches
