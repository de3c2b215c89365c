"""
Infrastructure layer - booking store backends.
Keeps booking logic clean from storage details.
"""

from .memory_store import InMemoryBookingStore
from .sql_store import SqlBookingStore

__all__ = ['InMemoryBookingStore', 'SqlBookingStore']
