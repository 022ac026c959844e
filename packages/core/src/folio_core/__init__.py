"""
Folio core: Markdown documents as a flat, pointer-addressed item sequence.
"""

__version__ = "0.1.0"
