"""
Property storage module.

This package contains the storage provider interface and its default
in-memory implementation.
"""

from semantic_editor.storage.dict_provider import DictStorageProvider
from semantic_editor.storage.provider import StorageProvider

__all__ = [
    "DictStorageProvider",
    "StorageProvider",
]
