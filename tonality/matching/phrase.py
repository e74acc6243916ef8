"""
Phrase buffering and segmentation.

Detection rule: a pulse similar to the running phrase (matched on the
same scale at or above the continuity threshold, or unmatched while the
running phrase is unmatched too) extends it; anything else closes it and
starts a new phrase. Buffered phrases can be turned into Ranges and fed
back into the corpus.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

import numpy as np

from tonality.core.config import settings
from tonality.core.logging import get_logger
from tonality.matching.pulse import Pulse
from tonality.music.notes import Note
from tonality.music.ranges import EventKind, Range

if TYPE_CHECKING:
    from tonality.matching.matcher import RangeMatch
    from tonality.music.scales import Scale

logger = get_logger(__name__)


@dataclass
class Phrase:
    """Consecutive pulses judged to belong together."""
    pulses: List[Pulse] = field(default_factory=list)
    matches: List[Optional["RangeMatch"]] = field(default_factory=list)
    scale: Optional["Scale"] = None

    @property
    def is_matched(self) -> bool:
        return self.scale is not None

    def __len__(self) -> int:
        return len(self.pulses)


class PhraseBuffer:
    """
    Accumulates pulses of one song into phrases.

    The buffer remembers the scale of the most recent match so the
    matcher can prefer template continuity.
    """

    def __init__(self, song: Optional[str] = None, continuity_threshold: Optional[float] = None):
        """
        Initialize phrase buffer.

        Args:
            song: Song identifier used as corpus tag
            continuity_threshold: Minimum best-match score for a pulse to
                continue the running phrase
        """
        self.song = song
        self.continuity_threshold = (
            settings.phrase_continuity_threshold
            if continuity_threshold is None else continuity_threshold
        )
        self.phrases: List[Phrase] = []
        self.current = Phrase()
        self.last_scale: Optional["Scale"] = None

    @property
    def last_scale_key(self) -> Optional[tuple]:
        return None if self.last_scale is None else self.last_scale.key

    def _is_similar(self, best: Optional["RangeMatch"]) -> bool:
        if best is None:
            return not self.current.is_matched
        return (
            self.current.is_matched
            and best.range.scale.key == self.current.scale.key
            and best.score >= self.continuity_threshold
        )

    def push(self, pulse: Pulse, matches: Sequence["RangeMatch"]) -> bool:
        """
        Add a matched pulse.

        Args:
            pulse: Pulse just matched
            matches: Ranked matches for it (may be empty)

        Returns:
            True if the pulse starts a new phrase
        """
        best = matches[0] if matches else None
        boundary = not self.current.pulses or not self._is_similar(best)

        if boundary and self.current.pulses:
            self.close()

        if not self.current.pulses and best is not None:
            self.current.scale = best.range.scale
        self.current.pulses.append(pulse)
        self.current.matches.append(best)

        if best is not None:
            self.last_scale = best.range.scale
        return boundary

    def close(self) -> Optional[Phrase]:
        """Close the running phrase, if any, and return it."""
        if not self.current.pulses:
            return None

        phrase = self.current
        self.phrases.append(phrase)
        self.current = Phrase()
        logger.debug(
            "phrase_closed",
            song=self.song,
            pulses=len(phrase),
            scale=None if phrase.scale is None else phrase.scale.symbol
        )
        return phrase

    def all_phrases(self) -> List[Phrase]:
        """Closed phrases plus the running one if it has pulses."""
        return self.phrases + ([self.current] if self.current.pulses else [])

    def compose_range(self, scale: "Scale", phrase: Optional[Phrase] = None) -> Range:
        """
        Group a phrase's pulses into a Range.

        Each non-empty pulse becomes one sub-range. A pitch sounding in
        consecutive pulses continues with a stretch; a pitch heard in a
        single pulse next to a held pitch is linked to it as a grace
        (appearance).

        Args:
            scale: Scale anchoring the new range
            phrase: Phrase to compose; defaults to the running phrase, or
                the last closed one when nothing is running

        Returns:
            Unfrozen Range
        """
        if phrase is None:
            phrase = self.current if self.current.pulses else (
                self.phrases[-1] if self.phrases else None
            )
        return compose_range(scale, [] if phrase is None else phrase.pulses)


def compose_range(
    scale: "Scale",
    pulses: Sequence[Pulse],
    tolerance_cents: Optional[float] = None
) -> Range:
    """
    Build a Range from consecutive pulses (see PhraseBuffer.compose_range).

    Sampled pitches within ``tolerance_cents`` of an earlier tone are read
    as that tone, so a sustained note with detuned readings stays one tone.

    Args:
        scale: Scale anchoring the new range
        pulses: Pulses in time order; empty pulses are skipped
        tolerance_cents: Pitch tolerance for tone identity; defaults to
            settings.pitch_tolerance_cents

    Returns:
        Unfrozen Range
    """
    tolerance = settings.pitch_tolerance_cents if tolerance_cents is None else tolerance_cents
    sounding = [pulse.notes() for pulse in pulses if not pulse.is_empty]
    if not sounding:
        raise ValueError("Cannot compose a range from empty pulses")

    tones: List[Note] = []
    segments: List[List[int]] = []
    for notes in sounding:
        identities = [_tone_identity(tones, note, tolerance) for note in notes]
        segments.append(list(dict.fromkeys(identities)))

    rng = Range(scale, tones)
    previous: Dict[int, int] = {}
    stretched_in = set()
    for segment, identities in enumerate(segments):
        current: Dict[int, int] = {}
        for tone in identities:
            held = tone in previous
            event = rng.add_event(tone, EventKind.CONTINUE if held else EventKind.START, segment)
            if held:
                rng.add_stretch(previous[tone], event)
                stretched_in.add(event)
            current[tone] = event
        previous = current

    stretched_out = {relation.source for relation in rng.stretches()}
    held_events = stretched_in | stretched_out
    for segment in rng.segments():
        anchors = [i for i in segment if i in held_events]
        if not anchors:
            continue
        for index in segment:
            if index not in held_events:
                rng.add_appearance(index, anchors[0])

    logger.debug("range_composed", pulses=len(sounding), tones=len(tones), events=rng.size)
    return rng


def _tone_identity(tones: List[Note], note: Note, tolerance: float) -> int:
    """Index of the closest known tone within tolerance, adding ``note`` if none."""
    if tones:
        distances = np.abs(np.array([tone.cents for tone in tones]) - note.cents)
        closest = int(np.argmin(distances))
        if distances[closest] <= tolerance:
            return closest
    tones.append(note)
    return len(tones) - 1
