"""
Core infrastructure package for the Behavior CRM backend.

Provides:
- Configuration management via pydantic-settings
- Async PostgreSQL connectivity via asyncpg and the RecordStore built on it
- The application error taxonomy

This module re-exports key components so other modules can write:

    from behavior_crm.core import get_settings, RecordStore, NotFoundError

FastAPI dependencies live in behavior_crm.core.dependencies and are imported
from there; they depend on the service layer.
"""

# =============================================================================
# Re-exports from behavior_crm.core.config
# =============================================================================
from behavior_crm.core.config import Settings, get_settings

# =============================================================================
# Re-exports from behavior_crm.core.database
# =============================================================================
from behavior_crm.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from behavior_crm.core.errors
# =============================================================================
from behavior_crm.core.errors import (
    CRMError,
    ForbiddenError,
    NotFoundError,
    PersistenceError,
    UnauthenticatedError,
    ValidationError,
)

# =============================================================================
# Re-exports from behavior_crm.core.store
# =============================================================================
from behavior_crm.core.store import PostgresRecordStore, Range, RecordStore

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    # Errors (from errors.py)
    'CRMError',
    'ForbiddenError',
    'NotFoundError',
    'PersistenceError',
    'UnauthenticatedError',
    'ValidationError',
    # Persistence (from store.py)
    'PostgresRecordStore',
    'Range',
    'RecordStore',
]
