"""Seating assignment and fairness engine for a restaurant floor."""

__version__ = "1.0.0"
