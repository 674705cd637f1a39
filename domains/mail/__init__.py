"""
Mail Domain

Delivers queued Messages through a single dispatch worker.
"""

__all__ = ["dispatcher"]
