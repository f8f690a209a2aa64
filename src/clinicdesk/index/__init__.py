"""
ClinicDesk Entity Index

Search and persistence boundary to the remote record store.
"""

from clinicdesk.index.base import EntityIndex, PersistResult
from clinicdesk.index.http import HttpEntityIndex, facility_candidate, subject_candidate
from clinicdesk.index.memory import InMemoryEntityIndex, SearchConfig

__all__ = [
    "EntityIndex",
    "PersistResult",
    "HttpEntityIndex",
    "InMemoryEntityIndex",
    "SearchConfig",
    "facility_candidate",
    "subject_candidate",
]
