"""
Phase progress module.
Derives per-phase completion, readiness and overlays for a student.
"""

from .engine import PhaseProgressEngine, compute_progress, overall_progress
from .notes import ParsedNotes, parse_notes, resolve_notes

__all__ = [
    'PhaseProgressEngine',
    'compute_progress',
    'overall_progress',
    'ParsedNotes',
    'parse_notes',
    'resolve_notes',
]
