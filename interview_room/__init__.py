"""Unattended spoken-interview room: turn taking, echo suppression and live scoring."""

__version__ = "0.1.0"
