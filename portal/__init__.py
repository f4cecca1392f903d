"""Maker/checker ticket portal: lifecycle rules, report export and backend."""

__version__ = "0.1.0"
