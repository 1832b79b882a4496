"""Telemetry and observability helpers.

This package emits structured stage events for formatting runs.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
