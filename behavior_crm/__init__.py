"""
Behavior CRM Backend Package.

Analytics core for a field-sales CRM: turns logged rep activities into
behavior metrics, outcome snapshots, coaching and competitor signals,
behavior-outcome correlations and next best actions, served over FastAPI.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, store, errors and dependencies
    - models: Pydantic schemas and enums
    - services: Business logic services
"""

__version__ = "1.0.0"
