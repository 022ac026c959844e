"""
Folio navigation: bounded cursor streams, evidence state and the error taxonomy
used when talking to an LLM over a document one portion at a time.
"""

__version__ = "0.1.0"
