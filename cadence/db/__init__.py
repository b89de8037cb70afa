"""PostgreSQL connectivity and store error hierarchy."""

from cadence.db.errors import ConnectionError, StoreError
from cadence.db.pool import PostgresPool

__all__ = [
    "PostgresPool",
    "StoreError",
    "ConnectionError",
]
