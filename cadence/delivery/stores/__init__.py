"""Tracking store implementations."""

from cadence.delivery.stores.inmemory import InMemoryTrackingStore
from cadence.delivery.stores.postgres import PostgresTrackingStore

__all__ = [
    "InMemoryTrackingStore",
    "PostgresTrackingStore",
]
