"""Markup handling: block extraction, rendering and script sanitization."""

from .blocks import extract_markup_blocks, restore_markup_blocks
from .render import format_narrative_html, render_with_markup, unwrap_markup_code_blocks
from .sanitizer import ScriptSanitizer
from .security import AnalysisCancelledError, AnalysisServiceError, ScriptSecurityAnalyzer

__all__ = [
    "AnalysisCancelledError",
    "AnalysisServiceError",
    "ScriptSanitizer",
    "ScriptSecurityAnalyzer",
    "extract_markup_blocks",
    "format_narrative_html",
    "render_with_markup",
    "restore_markup_blocks",
    "unwrap_markup_code_blocks",
]
