"""
spacetimectl Base Command Classes

Abstract base classes for consistent command structure.
"""

from .base_command import BaseCommand, to_jsonable

__all__ = [
    "BaseCommand",
    "to_jsonable",
]
