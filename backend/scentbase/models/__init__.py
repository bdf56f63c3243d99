"""Database models package.

Import every model here so SQLAlchemy registers it on the shared metadata.
"""

from scentbase.models.perfume import Perfume  # noqa: F401

__all__ = ["Perfume"]
