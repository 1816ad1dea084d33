"""
Services layer for the pantry service.

- PantryService: catalog and order operations, mode-transparent
"""

from .pantry_service import PantryService

__all__ = [
    "PantryService",
]
