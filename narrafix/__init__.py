"""Top-level package for Narrafix.

This package normalizes roleplay chat messages to a single narrative/quote
styling convention, keeping code, markup and out-of-character notes intact.
The main entry points are `normalize`, `extract_markup_blocks` and
`MessagePipeline`.
"""

from .markup.blocks import extract_markup_blocks, restore_markup_blocks
from .pipeline import MessagePipeline
from .text.normalizer import normalize

__all__ = [
    "MessagePipeline",
    "__version__",
    "extract_markup_blocks",
    "normalize",
    "restore_markup_blocks",
]

__version__ = "0.1.0"
