"""Tutoring calendar engine: shifts, tutor availability and student requests."""

__version__ = "0.1.0"
