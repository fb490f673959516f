"""
Reporting for probe results: one response per round of ticks, with findings,
recommendations and a summary.
"""

from .assembler import Assemble

__all__ = ["Assemble"]
