"""
Pulse matching and phrase segmentation.

Includes:
- Sampled pulses from performance data
- Modulation-proximity scoring
- Ranked pulse-to-range matching
- Phrase buffering and the append-only range corpus
"""

from tonality.matching.corpus import RangeCorpus
from tonality.matching.matcher import Matcher, RangeMatch
from tonality.matching.phrase import Phrase, PhraseBuffer, compose_range
from tonality.matching.proximity import MODULATION_BANDS, modulation_proximity
from tonality.matching.pulse import Pulse, SampledTone

__all__ = [
    'RangeCorpus',
    'Matcher',
    'RangeMatch',
    'Phrase',
    'PhraseBuffer',
    'compose_range',
    'MODULATION_BANDS',
    'modulation_proximity',
    'Pulse',
    'SampledTone',
]
