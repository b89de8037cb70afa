"""Cadence: step-delivery scheduler for chat-bot marketing scenarios."""

__version__ = "0.1.0"
