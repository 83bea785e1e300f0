"""Blockwriter - block-based chapter editing core."""

__version__ = "0.1.0"
