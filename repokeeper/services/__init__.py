"""
Service layer for repokeeper.

Contains business logic that orchestrates domain objects and infrastructure:
- RepositoryRegistry: The lock-guarded list of managed repositories
- RepositoryService: Clone, import, refresh, checkout, delete
- EventSink: Where clone notifications are delivered

Services are the primary API for commands to use.
They handle coordination between infrastructure and domain layers.
"""

from .registry_service import RepositoryRegistry
from .repository_service import RepositoryService, validate_name
from .event_sink import EventSink, NullSink, CallbackSink

__all__ = [
    'RepositoryRegistry',
    'RepositoryService',
    'validate_name',
    'EventSink',
    'NullSink',
    'CallbackSink',
]
