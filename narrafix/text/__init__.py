"""Text normalization components.

This package provides the pre-structural cleaner rules, the protected-region
table and the narrative/quote normalizer.
"""

from .cleaners import (
    CollapseEmphasisRuns,
    NormalizeQuotes,
    StripSpeakerLabel,
    TextCleaner,
)
from .normalizer import TextNormalizer, normalize
from .placeholders import PlaceholderTable, protect_literal_regions

__all__ = [
    "CollapseEmphasisRuns",
    "NormalizeQuotes",
    "PlaceholderTable",
    "StripSpeakerLabel",
    "TextCleaner",
    "TextNormalizer",
    "normalize",
    "protect_literal_regions",
]
