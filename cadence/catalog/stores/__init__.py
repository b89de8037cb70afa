"""Catalog store implementations."""

from cadence.catalog.stores.inmemory import (
    InMemoryContactDirectory,
    InMemoryCredentialResolver,
    InMemoryScenarioCatalog,
)
from cadence.catalog.stores.postgres import (
    PostgresContactDirectory,
    PostgresCredentialResolver,
    PostgresScenarioCatalog,
)

__all__ = [
    "InMemoryScenarioCatalog",
    "InMemoryContactDirectory",
    "InMemoryCredentialResolver",
    "PostgresScenarioCatalog",
    "PostgresContactDirectory",
    "PostgresCredentialResolver",
]
