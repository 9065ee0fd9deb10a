"""Skill Arena: task rotation, points scoring and submission integrity."""

__version__ = "0.1.0"
