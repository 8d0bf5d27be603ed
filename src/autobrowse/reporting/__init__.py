"""
Reporting module - Session telemetry.
"""

from autobrowse.reporting.telemetry import Telemetry, TelemetryEvent

__all__ = [
    "Telemetry",
    "TelemetryEvent",
]
