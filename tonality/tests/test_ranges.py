"""
Unit tests for scale-anchored ranges.

Tests:
- Sub-range partition rules
- Stretch and appearance invariants
- Freezing, copying and serialization
"""

import pytest

from tonality.core.exceptions import (
    DuplicateStretchError,
    ImmutableError,
    IndexOutOfRangeError,
    InvalidRelationError,
    PartitionError,
)
from tonality.music import EventKind, Note, Range, RelationKind, get_scale

START = EventKind.START
CONTINUE = EventKind.CONTINUE
SHORT_STOP = EventKind.SHORT_STOP


@pytest.fixture
def scale():
    """C major rooted at middle C."""
    return get_scale('major', root='C4')


@pytest.fixture
def grace_range(scale):
    """
    Three tones over three sub-ranges.

    Tone 1 (C4) starts, continues and short-stops; tone 2 (E4) starts and
    continues; tone 3 (G4) is a grace note onto tone 1's first event.
    """
    return Range.build(
        scale,
        [Note(60), Note(64), Note(67)],
        [
            (0, START, 0),       # 0: tone 1
            (1, START, 0),       # 1: tone 2
            (2, START, 0),       # 2: tone 3, grace
            (0, CONTINUE, 1),    # 3: tone 1
            (1, CONTINUE, 1),    # 4: tone 2
            (0, SHORT_STOP, 2),  # 5: tone 1
        ],
        stretches=[(0, 3)],
        appearances=[(2, 0)]
    )


class TestPartition:
    """Test sub-range ordering rules."""

    def test_first_event_opens_first_sub_range(self, scale):
        """Test events cannot start past sub-range 0."""
        rng = Range(scale, [Note(60)])

        with pytest.raises(PartitionError):
            rng.add_event(0, START, 1)

    def test_sub_ranges_cannot_skip(self, scale):
        """Test a new event opens at most the next sub-range."""
        rng = Range(scale, [Note(60)])
        rng.add_event(0, START, 0)

        with pytest.raises(PartitionError):
            rng.add_event(0, CONTINUE, 2)

    def test_sub_ranges_cannot_go_back(self, scale):
        """Test events stay in time order."""
        rng = Range(scale, [Note(60), Note(64)])
        rng.add_event(0, START, 0)
        rng.add_event(0, CONTINUE, 1)

        with pytest.raises(PartitionError):
            rng.add_event(1, START, 0)

    def test_default_segment_is_current(self, scale):
        """Test omitted sub-range joins the current one."""
        rng = Range(scale, [Note(60), Note(64)])
        rng.add_event(0, START)
        rng.add_event(1, START)

        assert [e.segment for e in rng.events] == [0, 0]

    def test_bad_tone_index(self, scale):
        """Test events must reference a known tone."""
        rng = Range(scale, [Note(60)])

        with pytest.raises(IndexOutOfRangeError):
            rng.add_event(1, START, 0)

    def test_range_needs_tones(self, scale):
        """Test an empty tone set is rejected."""
        with pytest.raises(ValueError):
            Range(scale, [])


class TestGraceExample:
    """Test the grace-note range."""

    def test_structure(self, grace_range):
        """Test event count and relation counts."""
        assert grace_range.size == 6
        assert len(grace_range.stretches()) == 1
        assert len(grace_range.appearances()) == 1
        assert grace_range.segments() == [[0, 1, 2], [3, 4], [5]]

    def test_relations(self, grace_range):
        """Test relation endpoints."""
        stretch = grace_range.stretches()[0]
        appearance = grace_range.appearances()[0]

        assert (stretch.source, stretch.target) == (0, 3)
        assert (appearance.source, appearance.target) == (2, 0)
        assert grace_range.chain(0) == [0, 3]
        assert grace_range.outgoing(2) == [appearance]
        assert grace_range.incoming(0) == [appearance]

    def test_second_stretch_from_source(self, grace_range):
        """Test the stretched event cannot continue twice."""
        with pytest.raises(DuplicateStretchError):
            grace_range.add_stretch(0, 3)
        with pytest.raises(DuplicateStretchError):
            grace_range.add_stretch(0, 4)

        assert len(grace_range.stretches()) == 1

    def test_short_stop_can_be_grace_source(self, grace_range):
        """Test short-stopped events may still take appearances."""
        relation = grace_range.add_appearance(5, 4)

        assert relation.kind is RelationKind.APPEARANCE

    def test_short_stop_cannot_stretch(self, grace_range):
        """Test short-stopped events never continue."""
        grace_range.add_event(0, CONTINUE, 3)

        with pytest.raises(InvalidRelationError):
            grace_range.add_stretch(5, 6)

    def test_alternative_partition(self, scale):
        """Test the grace tone modeled as a short continuation of tone 2."""
        rng = Range.build(
            scale,
            [Note(60), Note(64)],
            [
                (0, START, 0),
                (1, START, 0),
                (0, CONTINUE, 1),
                (1, CONTINUE, 1),
                (0, SHORT_STOP, 2),
                (1, SHORT_STOP, 2),
            ],
            stretches=[(0, 2), (1, 3), (3, 5)]
        )

        assert rng.size == 6
        assert len(rng.stretches()) == 3
        assert rng.chain(1) == [1, 3, 5]
        assert not rng.appearances()


class TestRelationRules:
    """Test stretch and appearance validation."""

    @pytest.fixture
    def two_tones(self, scale):
        """C4 and E4 sounding over two sub-ranges."""
        return Range.build(
            scale,
            [Note(60), Note(64)],
            [(0, START, 0), (1, START, 0), (0, CONTINUE, 1), (1, CONTINUE, 1)]
        )

    @pytest.mark.parametrize("kind", [START, CONTINUE])
    def test_one_stretch_per_source(self, scale, kind):
        """Test any further stretch from a stretched source is rejected."""
        rng = Range.build(
            scale,
            [Note(60), Note(64)],
            [(0, kind, 0), (0, CONTINUE, 1), (0, CONTINUE, 1), (1, SHORT_STOP, 1)]
        )
        rng.add_stretch(0, 1)

        with pytest.raises(DuplicateStretchError):
            rng.add_stretch(0, 2)
        with pytest.raises(DuplicateStretchError):
            rng.add_stretch(0, 3)

    def test_stretch_needs_same_pitch(self, two_tones):
        """Test stretches connect one pitch."""
        with pytest.raises(InvalidRelationError):
            two_tones.add_stretch(0, 3)

    def test_stretch_matches_pitch_not_spelling(self, scale):
        """Test pitch-equal tones with different spelling can stretch."""
        rng = Range.build(
            scale,
            [Note(60), Note(61, -100)],
            [(0, START, 0), (1, CONTINUE, 1)]
        )

        assert rng.add_stretch(0, 1).kind is RelationKind.STRETCH

    def test_stretch_needs_next_sub_range(self, scale):
        """Test stretches cross exactly one sub-range boundary."""
        rng = Range.build(
            scale,
            [Note(60)],
            [(0, START, 0), (0, CONTINUE, 0), (0, CONTINUE, 1), (0, CONTINUE, 2)]
        )

        with pytest.raises(InvalidRelationError):
            rng.add_stretch(0, 1)
        with pytest.raises(InvalidRelationError):
            rng.add_stretch(0, 3)

    def test_stretch_target_cannot_start(self, scale):
        """Test a stretch cannot land on a fresh attack."""
        rng = Range.build(scale, [Note(60)], [(0, START, 0), (0, START, 1)])

        with pytest.raises(InvalidRelationError):
            rng.add_stretch(0, 1)

    def test_appearance_needs_distinct_pitch(self, two_tones):
        """Test appearances connect different pitches."""
        with pytest.raises(InvalidRelationError):
            two_tones.add_appearance(0, 2)

    def test_appearance_spans_at_most_one_boundary(self, scale):
        """Test appearances stay within adjacent sub-ranges."""
        rng = Range.build(
            scale,
            [Note(60), Note(64)],
            [(0, START, 0), (1, START, 1), (1, CONTINUE, 2)]
        )

        assert rng.add_appearance(0, 1).kind is RelationKind.APPEARANCE
        with pytest.raises(InvalidRelationError):
            rng.add_appearance(0, 2)

    def test_self_relation(self, two_tones):
        """Test events cannot relate to themselves."""
        with pytest.raises(InvalidRelationError):
            two_tones.add_appearance(1, 1)

    def test_unknown_event(self, two_tones):
        """Test relations must reference known events."""
        with pytest.raises(IndexOutOfRangeError):
            two_tones.add_stretch(0, 9)


class TestRangeLifecycle:
    """Test single ranges, freezing, copying and serialization."""

    def test_single(self, scale):
        """Test single-tone degree ranges."""
        rng = Range.single(scale, 4)

        assert rng.is_single
        assert rng.tones == (Note(67),)
        assert rng.register == 4

    def test_frozen_range_rejects_changes(self, grace_range):
        """Test freezing makes the range immutable."""
        grace_range.freeze()

        with pytest.raises(ImmutableError):
            grace_range.add_event(0, CONTINUE, 2)
        with pytest.raises(ImmutableError):
            grace_range.add_appearance(5, 4)

    def test_copy_is_independent(self, grace_range):
        """Test copies are unfrozen and do not share state."""
        grace_range.freeze()
        copy = grace_range.copy()

        copy.add_event(1, START, 2)

        assert not copy.frozen
        assert copy.size == 7
        assert grace_range.size == 6

    def test_dict_round_trip(self, scale, grace_range):
        """Test serialization keeps events and relations."""
        data = grace_range.to_dict()
        rebuilt = Range.from_dict(scale, data)

        assert data['scale'] == 'Major'
        assert rebuilt.events == grace_range.events
        assert rebuilt.relations == grace_range.relations
        assert rebuilt.tones == grace_range.tones

    def test_contains(self, grace_range):
        """Test tone lookup with tolerance."""
        assert grace_range.contains(Note(64))
        assert grace_range.contains(Note(64, 10), tolerance_cents=15)
        assert not grace_range.contains(Note(65))
