"""
Glyph Alerts: timed multi-stage alert controller for glyph light arrays.
"""

__version__ = "0.1.0"
