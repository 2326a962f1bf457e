"""
Model loading module.

This package contains the dictionary/JSON loader that builds an editing
session and the matching export function.
"""

from semantic_editor.loader.dict_loader import DictModelLoader, model_to_dict

__all__ = [
    "DictModelLoader",
    "model_to_dict",
]
