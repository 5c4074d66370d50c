"""
Decision module.
Write operations for interview, CAS and visa decisions and phase payments.
"""

from .decision_service import NOTES_TEXT_KEY, DecisionService, dump_notes, load_notes

__all__ = ['DecisionService', 'NOTES_TEXT_KEY', 'dump_notes', 'load_notes']
