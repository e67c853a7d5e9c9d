"""Row stores the import pipeline can read from and write to."""

from .base import LeadStore, Row
from .memory import InMemoryLeadStore

__all__ = ["LeadStore", "Row", "InMemoryLeadStore"]
