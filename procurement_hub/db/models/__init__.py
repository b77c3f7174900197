"""
SQLAlchemy ORM models package.

Re-exports all models for convenient imports.
"""

from procurement_hub.db.models.collection import CollectionModel

__all__ = [
    "CollectionModel",
]
