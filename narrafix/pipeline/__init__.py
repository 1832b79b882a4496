"""Narrafix message pipeline package.

This package contains the orchestration layer that decides, per message,
which formatting stages run and persists the result.
"""

from .orchestrator import MessagePipeline

__all__ = ["MessagePipeline"]
