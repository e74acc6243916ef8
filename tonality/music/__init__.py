"""
Tonal model.

Includes:
- Interval and note arithmetic
- Scales with lazily generated degrees and canonical presets
- Tonal spectra
- Scale-anchored ranges with stretch/appearance relations
"""

from tonality.music.intervals import Interval, INTERVALS, width_in_cents
from tonality.music.notes import Note, MIDDLE_C, add, compare
from tonality.music.ranges import EventKind, Range, Relation, RelationKind, ToneEvent
from tonality.music.scales import Scale, SCALES, get_scale
from tonality.music.spectrum import Spectrum

__all__ = [
    'Interval',
    'INTERVALS',
    'width_in_cents',
    'Note',
    'MIDDLE_C',
    'add',
    'compare',
    'EventKind',
    'Range',
    'Relation',
    'RelationKind',
    'ToneEvent',
    'Scale',
    'SCALES',
    'get_scale',
    'Spectrum',
]
