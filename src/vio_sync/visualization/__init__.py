"""Diagnostic output."""

from .diagnostics import DiagnosticsPublisher
from .rerun_sink import RerunImageSink

__all__ = ["DiagnosticsPublisher", "RerunImageSink"]
