"""
Repository module.
Storage for student snapshots consumed by the progress engine.
"""

from .memory_repository import InMemoryStudentRepository

__all__ = ['InMemoryStudentRepository']
