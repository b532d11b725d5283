"""Compression telemetry."""

from chatcompact.telemetry.events import ChatCompressionEvent
from chatcompact.telemetry.logger import TelemetryLogger

__all__ = ["ChatCompressionEvent", "TelemetryLogger"]
