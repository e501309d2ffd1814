"""
utils/serialization.py

Purpose: Document to JSON helpers

- ObjectId -> str, datetime -> ISO string
- Strips private fields (password hashes, internal flags)
"""

from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder

PRIVATE_FIELDS = ("pass", "providers", "joined_ip")


def to_public(doc: Optional[Dict[str, Any]], exclude: Iterable[str] = PRIVATE_FIELDS) -> Optional[Dict[str, Any]]:
    """
    Converts a MongoDB document into a JSON-friendly dict.

    Args:
        doc: Document (or None)
        exclude: Top-level keys to drop

    Returns:
        JSON-friendly dict, or None
    """
    if doc is None:
        return None
    cleaned = {key: value for key, value in doc.items() if key not in set(exclude)}
    return jsonable_encoder(cleaned, custom_encoder={ObjectId: str})


def to_public_list(docs: List[Dict[str, Any]], exclude: Iterable[str] = PRIVATE_FIELDS) -> List[Dict[str, Any]]:
    return [to_public(doc, exclude) for doc in docs]
