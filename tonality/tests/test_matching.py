"""
Unit tests for pulse matching.

Tests:
- Modulation proximity curve
- Pulses
- Matcher scoring, thresholds and ranking
- Phrase buffering and range composition
"""

import pytest
import numpy as np

from tonality.matching import (
    MODULATION_BANDS,
    Matcher,
    PhraseBuffer,
    Pulse,
    SampledTone,
    compose_range,
    modulation_proximity,
)
from tonality.matching.proximity import pitch_class_distance
from tonality.music import INTERVALS, EventKind, Note, Range, get_scale


@pytest.fixture
def major():
    """C major rooted at middle C."""
    return get_scale('major', root='C4')


@pytest.fixture
def triad(major):
    """C major triad sounding in one sub-range."""
    return Range.build(
        major,
        [Note(60), Note(64), Note(67)],
        [(0, EventKind.START, 0), (1, EventKind.START, 0), (2, EventKind.START, 0)]
    )


@pytest.fixture
def matcher():
    """Matcher with explicit configuration."""
    return Matcher(threshold=0.5, pitch_weight=0.6, tolerance_cents=50, unison_tolerance=15)


class TestModulationProximity:
    """Test the proximity curve."""

    def test_octave_equivalence(self):
        """Test unison and octaves are fully proximate."""
        for cents in (0, 1200, -1200, 2400):
            assert modulation_proximity(cents) == pytest.approx(1.0)

    def test_band_ordering(self):
        """Test fifth > fourth > major third > minor seventh."""
        fifth = modulation_proximity(700)
        fourth = modulation_proximity(500)
        third = modulation_proximity(400)
        seventh = modulation_proximity(1000)

        assert fifth > fourth > third > seventh
        assert modulation_proximity(600) < third

    def test_bands_at_anchors(self):
        """Test the curve passes through every band value."""
        for semitones, value in MODULATION_BANDS.items():
            assert modulation_proximity(semitones * 100) == pytest.approx(value)

    def test_tail_decays_to_zero(self):
        """Test the curve falls monotonically past the minor seventh."""
        cents = np.linspace(1000, 1199.5, 80)
        values = np.array([modulation_proximity(c) for c in cents])

        assert np.all(np.diff(values) <= 1e-12)
        assert modulation_proximity(1199.9) < 0.01

    def test_values_in_unit_interval(self):
        """Test proximity stays within 0-1 over two octaves."""
        values = [modulation_proximity(c) for c in np.arange(-1200, 1200, 7.5)]

        assert min(values) >= 0.0
        assert max(values) <= 1.0

    def test_unison_tolerance(self):
        """Test near-octave distances count as unison within tolerance."""
        assert modulation_proximity(1195, unison_tolerance=10) == 1.0
        assert modulation_proximity(8, unison_tolerance=10) == 1.0
        assert modulation_proximity(1195) < 0.01

    def test_pitch_class_distance(self):
        """Test octave-equivalent distance."""
        assert pitch_class_distance(6000, 7200) == pytest.approx(0.0)
        assert pitch_class_distance(6000, 7100) == pytest.approx(100.0)
        assert pitch_class_distance(6000, 6600) == pytest.approx(600.0)


class TestPulse:
    """Test pulse construction."""

    def test_from_notes_dedupes(self):
        """Test repeated pitches collapse."""
        pulse = Pulse.from_notes([64, 60, 60, 'G4'], sample_time=0)

        assert len(pulse) == 3
        assert pulse.notes() == [Note(60), Note(64), Note(67)]

    def test_from_frequencies(self):
        """Test frequencies become notes with cent deviations."""
        pulse = Pulse.from_frequencies([440.0, 261.63], loudness=[0.5, 1.0])

        assert pulse.notes()[0].number == 60
        assert pulse.notes()[1] == Note(69)
        assert pulse.tones[1].loudness == 0.5

    def test_loudness_count_mismatch(self):
        """Test loudness values must pair with frequencies."""
        with pytest.raises(ValueError):
            Pulse.from_frequencies([440.0, 220.0], loudness=[1.0])

    def test_invalid_loudness(self):
        """Test loudness is bounded."""
        with pytest.raises(ValueError):
            SampledTone(Note(60), loudness=1.5)

    def test_transpose(self):
        """Test moving every tone by an interval."""
        pulse = Pulse.from_notes([60, 64]).transpose(INTERVALS['octave'])

        assert pulse.notes() == [Note(72), Note(76)]

    def test_empty(self):
        """Test empty pulses."""
        assert Pulse().is_empty


class TestMatcher:
    """Test scoring and ranking."""

    def test_unison_scores_full(self, matcher, triad):
        """Test a pulse equal to the range scores 1."""
        pulse = Pulse.from_notes([60, 64, 67])

        assert matcher.score(pulse, triad) == pytest.approx(1.0)

    def test_octave_equivalent(self, matcher, triad):
        """Test an octave transposition scores like the untransposed pulse."""
        pulse = Pulse.from_notes([60, 64, 67])
        up = pulse.transpose(INTERVALS['octave'])
        tritone = pulse.transpose(INTERVALS['tritone'])

        assert matcher.score(up, triad) == pytest.approx(matcher.score(pulse, triad))
        assert matcher.score(up, triad) > matcher.score(tritone, triad)

    def test_score_bounds(self, matcher, triad):
        """Test scores stay within 0-1."""
        for root in range(48, 72):
            pulse = Pulse.from_notes([root, root + 3, root + 8])
            assert 0.0 <= matcher.score(pulse, triad) <= 1.0

    def test_empty_pulse_scores_zero(self, matcher, triad):
        """Test an empty pulse matches nothing."""
        assert matcher.score(Pulse(), triad) == 0.0

    def test_empty_corpus(self, matcher):
        """Test matching against no ranges."""
        assert matcher.match(Pulse.from_notes([60]), []) == []

    def test_threshold_fails_closed(self, matcher, triad):
        """Test sub-threshold candidates are dropped."""
        tritone = Pulse.from_notes([66, 70, 73])

        assert matcher.match(tritone, [triad]) == []
        assert matcher.match(tritone, [triad], threshold=0.0)

    def test_ranked_by_score(self, matcher, major, triad):
        """Test better matches come first."""
        single = Range.single(major, 0)
        pulse = Pulse.from_notes([60, 64, 67])

        matches = matcher.match(pulse, [single, triad])

        assert [m.range for m in matches] == [triad, single]
        assert matches[0].score > matches[1].score

    def test_tie_prefers_smaller_range(self, matcher, major, triad):
        """Test equal scores rank the smaller range first."""
        single = Range.single(major, 0)

        matches = matcher.match(Pulse.from_notes([60]), [triad, single])

        assert matches[0].score == pytest.approx(matches[1].score)
        assert matches[0].range is single

    def test_tie_prefers_recent_scale(self, matcher, major):
        """Test equal scores rank the most recently matched scale first."""
        minor = get_scale('minor', root='C4')
        major_c = Range.single(major, 0)
        minor_c = Range.single(minor, 0)
        buffer = PhraseBuffer(song='etude')
        buffer.last_scale = minor

        matches = matcher.match(Pulse.from_notes([60]), [major_c, minor_c], buffer=buffer)

        assert matches[0].range is minor_c
        assert matcher.match(Pulse.from_notes([60]), [major_c, minor_c])[0].range is major_c

    def test_pitch_weight_validation(self):
        """Test pitch weight must be within 0-1."""
        with pytest.raises(ValueError):
            Matcher(pitch_weight=1.5)

    def test_settings_defaults(self):
        """Test defaults come from configuration."""
        from tonality.core.config import settings

        default = Matcher()

        assert default.threshold == settings.match_threshold
        assert default.pitch_weight == settings.pitch_weight


class TestPhraseBuffer:
    """Test phrase detection."""

    def test_similar_pulses_form_one_phrase(self, matcher, triad):
        """Test matched pulses on one scale continue the phrase."""
        buffer = PhraseBuffer(song='etude', continuity_threshold=0.75)
        chord = [60, 64, 67]

        matcher.match(Pulse.from_notes(chord, sample_time=0), [triad], buffer=buffer)
        matcher.match(Pulse.from_notes(chord, sample_time=1), [triad], buffer=buffer)

        assert buffer.phrases == []
        assert len(buffer.current) == 2
        assert buffer.current.scale is triad.scale
        assert buffer.last_scale is triad.scale

    def test_unmatched_pulse_starts_new_phrase(self, matcher, triad):
        """Test a pulse with no match closes a matched phrase."""
        buffer = PhraseBuffer(continuity_threshold=0.75)

        matcher.match(Pulse.from_notes([60, 64, 67]), [triad], buffer=buffer)
        boundary = buffer.push(Pulse.from_notes([66, 70, 73]), [])

        assert boundary
        assert len(buffer.phrases) == 1
        assert not buffer.current.is_matched
        assert len(buffer.all_phrases()) == 2

    def test_unmatched_pulses_group(self):
        """Test consecutive unmatched pulses stay together."""
        buffer = PhraseBuffer()

        assert buffer.push(Pulse.from_notes([61]), [])
        assert not buffer.push(Pulse.from_notes([66]), [])
        assert len(buffer.current) == 2

    def test_close(self):
        """Test closing moves the running phrase."""
        buffer = PhraseBuffer()
        buffer.push(Pulse.from_notes([60]), [])

        phrase = buffer.close()

        assert len(phrase) == 1
        assert buffer.close() is None
        assert buffer.phrases == [phrase]


class TestComposeRange:
    """Test building ranges from pulses."""

    def test_held_and_grace_tones(self, major):
        """Test held pitches stretch and passing pitches attach as graces."""
        pulses = [
            Pulse.from_notes([60, 64]),
            Pulse.from_notes([60, 62, 64]),
            Pulse.from_notes([60]),
        ]

        rng = compose_range(major, pulses)

        assert rng.size == 6
        assert rng.segments() == [[0, 1], [2, 3, 4], [5]]
        assert [(r.source, r.target) for r in rng.stretches()] == [(0, 2), (1, 4), (2, 5)]
        assert [(r.source, r.target) for r in rng.appearances()] == [(3, 2)]
        assert rng.events[3].kind is EventKind.START
        assert rng.events[5].kind is EventKind.CONTINUE

    def test_detuned_readings_hold_one_tone(self, major):
        """Test a sustained note with jittered frequency readings stays one tone."""
        pulses = [
            Pulse.from_frequencies([261.60, 329.63]),
            Pulse.from_frequencies([261.70, 329.63]),
        ]

        rng = compose_range(major, pulses)

        assert len(rng.tones) == 2
        assert rng.tones[0].number == 60
        assert len(rng.stretches()) == 2
        assert rng.appearances() == []

        exact = compose_range(major, pulses, tolerance_cents=0.0)
        assert len(exact.tones) == 3
        assert len(exact.stretches()) == 1

    def test_skips_empty_pulses(self, major):
        """Test empty pulses do not open sub-ranges."""
        rng = compose_range(major, [Pulse.from_notes([60]), Pulse(), Pulse.from_notes([60])])

        assert rng.segments() == [[0], [1]]
        assert rng.chain(0) == [0, 1]

    def test_requires_sound(self, major):
        """Test composing from silence."""
        with pytest.raises(ValueError):
            compose_range(major, [Pulse()])

    def test_buffer_compose(self, major):
        """Test composing the running phrase of a buffer."""
        buffer = PhraseBuffer()
        buffer.push(Pulse.from_notes([60, 67]), [])
        buffer.push(Pulse.from_notes([60, 67]), [])

        rng = buffer.compose_range(major)

        assert rng.size == 4
        assert len(rng.stretches()) == 2
