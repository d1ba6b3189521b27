# booklingo/models/__init__.py
"""
Data models for Booklingo.
"""

from .types import (
    FileType,
    TranslationStatus,
    Snippet,
    Batch,
    ImageDescriptor,
    PageUnit,
    TranslationResult,
)

__all__ = [
    'FileType',
    'TranslationStatus',
    'Snippet',
    'Batch',
    'ImageDescriptor',
    'PageUnit',
    'TranslationResult',
]
