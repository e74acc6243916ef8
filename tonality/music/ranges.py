"""
Scale-anchored tonal ranges.

A Range describes a tonal spectrum without absolute timing: a set of
tones (pitch identities), a time-ordered sequence of tone-events
partitioned into sub-ranges, and a small directed graph of relations
between those events.

Events live in an arena and are referenced by index; relations are
index pairs tagged by kind. Two relation kinds exist:

- Stretch: the same sounding tone continuing from one sub-range into
  the next. An event can continue into at most one future, so it may be
  the source of at most one stretch, and a short-stopped event may not
  be the source of any.
- Appearance: a grace or slur connection between two events of
  different pitch in the same or adjacent sub-ranges.

Which sub-range partition a caller chooses for ambiguous timing is a
modeling decision left to the caller; every partition obeying the rules
above is a valid Range.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from tonality.core.exceptions import (
    DuplicateStretchError,
    ImmutableError,
    IndexOutOfRangeError,
    InvalidRelationError,
    PartitionError,
)
from tonality.core.logging import get_logger
from tonality.music.notes import Note

if TYPE_CHECKING:
    from tonality.music.scales import Scale

logger = get_logger(__name__)


class EventKind(Enum):
    """How a tone-event sounds within its sub-range."""
    START = "start"
    CONTINUE = "continue"
    SHORT_STOP = "short_stop"


class RelationKind(Enum):
    """Kinds of edges between tone-events."""
    STRETCH = "stretch"
    APPEARANCE = "appearance"


@dataclass(frozen=True)
class ToneEvent:
    """A single occurrence of a tone inside a sub-range."""
    tone: int  # index into Range.tones
    kind: EventKind
    segment: int  # sub-range index


@dataclass(frozen=True)
class Relation:
    """Directed edge between two tone-events, by arena index."""
    kind: RelationKind
    source: int
    target: int


EventSpec = Union[ToneEvent, Tuple[int, EventKind, int], Tuple[int, EventKind]]


class Range:
    """
    Tone-events plus stretch/appearance relations anchored to a scale.

    The Range owns its events and relations and keeps a non-owning
    reference to its scale.
    """

    def __init__(
        self,
        scale: "Scale",
        tones: Sequence[Note],
        register: Optional[int] = None
    ):
        """
        Initialize an empty range.

        Args:
            scale: Anchoring scale
            tones: Pitch identities that events refer to by index
            register: Register number in the scale's index space, if any
        """
        if not tones:
            raise ValueError("A range needs at least one tone")

        self.scale = scale
        self.tones: Tuple[Note, ...] = tuple(tones)
        self.register = register

        self._events: List[ToneEvent] = []
        self._relations: Dict[Relation, None] = {}
        self._stretch_from: Dict[int, int] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        scale: "Scale",
        tones: Sequence[Note],
        events: Iterable[EventSpec],
        stretches: Iterable[Tuple[int, int]] = (),
        appearances: Iterable[Tuple[int, int]] = (),
        register: Optional[int] = None
    ) -> "Range":
        """
        Build a range from observed tone-events and their relations.

        Events are appended first (partition rules), then stretches,
        then appearances.

        Args:
            scale: Anchoring scale
            tones: Pitch identities
            events: ToneEvents or (tone, kind[, segment]) tuples in time order
            stretches: (source, target) event index pairs
            appearances: (source, target) event index pairs
            register: Optional register number

        Returns:
            Constructed Range
        """
        rng = cls(scale, tones, register=register)
        for spec in events:
            if isinstance(spec, ToneEvent):
                rng.add_event(spec.tone, spec.kind, spec.segment)
            else:
                rng.add_event(*spec)
        for source, target in stretches:
            rng.add_stretch(source, target)
        for source, target in appearances:
            rng.add_appearance(source, target)

        logger.debug(
            "range_built",
            tones=len(rng.tones),
            events=rng.size,
            relations=len(rng._relations)
        )
        return rng

    @classmethod
    def single(cls, scale: "Scale", register: int) -> "Range":
        """Single-tone range for one scale degree."""
        rng = cls(scale, [scale.degree(register)], register=register)
        rng.add_event(0, EventKind.START, 0)
        return rng

    def add_event(self, tone: int, kind: EventKind, segment: Optional[int] = None) -> int:
        """
        Append a tone-event to the time-ordered partition.

        Args:
            tone: Index into ``tones``
            kind: Event kind
            segment: Sub-range index; defaults to the current last sub-range.
                Must equal the current last sub-range or the next one.

        Returns:
            Arena index of the new event
        """
        self._check_mutable()
        if not 0 <= tone < len(self.tones):
            raise IndexOutOfRangeError(
                f"Tone index {tone} out of range for {len(self.tones)} tones"
            )
        kind = EventKind(kind)

        last = self._events[-1].segment if self._events else 0
        if segment is None:
            segment = last
        if not self._events and segment != 0:
            raise PartitionError(f"First event must open sub-range 0, got {segment}")
        if segment < last or segment > last + 1:
            raise PartitionError(
                f"Event in sub-range {segment} does not follow sub-range {last}"
            )

        self._events.append(ToneEvent(tone, kind, segment))
        return len(self._events) - 1

    def add_stretch(self, source: int, target: int) -> Relation:
        """
        Mark ``target`` as the continuation of ``source``.

        Raises:
            DuplicateStretchError: If ``source`` already continues elsewhere
            InvalidRelationError: If the events differ in pitch, are not in
                adjacent sub-ranges, or ``source`` is short-stopped
        """
        self._check_mutable()
        src, dst = self._pair(source, target)

        if source in self._stretch_from:
            raise DuplicateStretchError(
                f"Event {source} already stretches into event {self._stretch_from[source]}"
            )
        if src.kind is EventKind.SHORT_STOP:
            raise InvalidRelationError(f"Short-stopped event {source} cannot stretch")
        if self.tones[src.tone] != self.tones[dst.tone]:
            raise InvalidRelationError(
                f"Stretch needs one pitch, got {self.tones[src.tone]} and {self.tones[dst.tone]}"
            )
        if dst.segment != src.segment + 1:
            raise InvalidRelationError(
                f"Stretch must cross into the next sub-range "
                f"({src.segment} -> {dst.segment})"
            )
        if dst.kind is EventKind.START:
            raise InvalidRelationError(f"Event {target} starts a new tone and cannot continue one")

        relation = Relation(RelationKind.STRETCH, source, target)
        self._relations[relation] = None
        self._stretch_from[source] = target
        return relation

    def add_appearance(self, source: int, target: int) -> Relation:
        """
        Connect ``source`` to ``target`` as a grace or slur.

        Raises:
            InvalidRelationError: If the events share a pitch or lie more
                than one sub-range apart
        """
        self._check_mutable()
        src, dst = self._pair(source, target)

        if self.tones[src.tone] == self.tones[dst.tone]:
            raise InvalidRelationError(
                f"Appearance needs distinct pitches, both are {self.tones[src.tone]}"
            )
        if abs(dst.segment - src.segment) > 1:
            raise InvalidRelationError(
                f"Appearance spans sub-ranges {src.segment} and {dst.segment}"
            )

        relation = Relation(RelationKind.APPEARANCE, source, target)
        self._relations[relation] = None
        return relation

    def _pair(self, source: int, target: int) -> Tuple[ToneEvent, ToneEvent]:
        for index in (source, target):
            if not 0 <= index < len(self._events):
                raise IndexOutOfRangeError(
                    f"Event index {index} out of range for {len(self._events)} events"
                )
        if source == target:
            raise InvalidRelationError(f"Event {source} cannot relate to itself")
        return self._events[source], self._events[target]

    def _check_mutable(self) -> None:
        if self._frozen:
            raise ImmutableError("Range is frozen")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def events(self) -> Tuple[ToneEvent, ...]:
        return tuple(self._events)

    @property
    def relations(self) -> Tuple[Relation, ...]:
        return tuple(self._relations)

    @property
    def size(self) -> int:
        """Number of tone-events."""
        return len(self._events)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def is_single(self) -> bool:
        """Degenerate single-tone range with no relations."""
        return len(self._events) == 1 and not self._relations

    def __len__(self) -> int:
        return len(self._events)

    def stretches(self) -> List[Relation]:
        return [r for r in self._relations if r.kind is RelationKind.STRETCH]

    def appearances(self) -> List[Relation]:
        return [r for r in self._relations if r.kind is RelationKind.APPEARANCE]

    def outgoing(self, index: int) -> List[Relation]:
        return [r for r in self._relations if r.source == index]

    def incoming(self, index: int) -> List[Relation]:
        return [r for r in self._relations if r.target == index]

    def chain(self, index: int) -> List[int]:
        """Follow stretches from an event to the end of its continuation chain."""
        chain = [index]
        while chain[-1] in self._stretch_from:
            chain.append(self._stretch_from[chain[-1]])
        return chain

    def segments(self) -> List[List[int]]:
        """Event indices grouped by sub-range, in time order."""
        groups: List[List[int]] = []
        for index, event in enumerate(self._events):
            if event.segment == len(groups):
                groups.append([])
            groups[event.segment].append(index)
        return groups

    def note_of(self, index: int) -> Note:
        """Pitch of the event at ``index``."""
        return self.tones[self._events[index].tone]

    def notes(self) -> List[Note]:
        """Pitch of every event, in event order."""
        return [self.tones[event.tone] for event in self._events]

    def contains(self, note: Note, tolerance_cents: float = 0.0) -> bool:
        """Check whether any tone of the range is within tolerance of ``note``."""
        return any(abs(tone.cents - note.cents) <= tolerance_cents for tone in self.tones)

    # ------------------------------------------------------------------
    # Copying and serialization
    # ------------------------------------------------------------------

    def copy(self, scale: Optional["Scale"] = None) -> "Range":
        """
        Return an unfrozen copy, optionally re-anchored to another scale.

        Events and relations are plain values, so copying the arena is enough.
        """
        rng = Range(self.scale if scale is None else scale, self.tones, self.register)
        rng._events = list(self._events)
        rng._relations = dict(self._relations)
        rng._stretch_from = dict(self._stretch_from)
        return rng

    def freeze(self) -> "Range":
        """Make this range immutable and return it."""
        self._frozen = True
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain Python types."""
        return {
            'scale': getattr(self.scale, 'symbol', None),
            'register': self.register,
            'tones': [{'number': t.number, 'adjustment': t.adjustment} for t in self.tones],
            'events': [
                {'tone': e.tone, 'kind': e.kind.value, 'segment': e.segment}
                for e in self._events
            ],
            'relations': [
                {'kind': r.kind.value, 'source': r.source, 'target': r.target}
                for r in self._relations
            ],
        }

    @classmethod
    def from_dict(cls, scale: "Scale", data: Dict[str, Any]) -> "Range":
        """Rebuild a range serialized with :meth:`to_dict`."""
        relations = data.get('relations', [])
        return cls.build(
            scale,
            [Note(t['number'], t.get('adjustment', 0.0)) for t in data['tones']],
            [(e['tone'], EventKind(e['kind']), e['segment']) for e in data['events']],
            stretches=[
                (r['source'], r['target']) for r in relations
                if r['kind'] == RelationKind.STRETCH.value
            ],
            appearances=[
                (r['source'], r['target']) for r in relations
                if r['kind'] == RelationKind.APPEARANCE.value
            ],
            register=data.get('register'),
        )

    def __repr__(self) -> str:
        tones = ", ".join(str(t) for t in self.tones)
        return (
            f"Range(tones=[{tones}], events={len(self._events)}, "
            f"relations={len(self._relations)}, register={self.register})"
        )
