"""HTTP trigger surface for the delivery scheduler."""

from cadence.api.app import create_app

__all__ = ["create_app"]
