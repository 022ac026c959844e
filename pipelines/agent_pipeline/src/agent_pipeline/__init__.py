"""Cursor agent pipeline: answers questions about a document one bounded portion at a time."""

__version__ = "0.1.0"
