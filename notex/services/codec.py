"""
Record codec.

A record's `content` field is turned into application content exactly once on
the way in (decode / to_content) and serialized exactly once on the way out
(dumps_record, which writes the whole record as JSON). Every layer in between
hands PlainText / StructuredSnapshot values through untouched; calling
to_content on an already-resolved value is a no-op, so a value that crosses
several layers is never wrapped in another layer of string escaping.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from notex.errors import MalformedRecordError
from notex.schemas.records import Content, PlainText, Record, StructuredSnapshot
from notex.schemas.tree import LeafType

logger = logging.getLogger(__name__)


def default_content(leaf_type: LeafType) -> Content:
    if leaf_type == "canvas":
        return StructuredSnapshot()
    return PlainText()


def decode(raw: Any, leaf_type: LeafType) -> Content:
    """
    Materialize stored content for a leaf of the given type.

    Canvas content stored as a JSON string (older records) is decoded once;
    if that does not yield a mapping the string is surfaced as plain text.
    Notes whose stored content is a mapping keep it as a snapshot; nothing
    is migrated on disk.

    Args:
        raw: Value of the record's content field
        leaf_type: Type declared by the leaf ("note" or "canvas")

    Returns:
        PlainText or StructuredSnapshot

    Raises:
        MalformedRecordError: if the stored value has an unusable shape
    """
    if raw is None:
        return default_content(leaf_type)

    if leaf_type == "canvas":
        if isinstance(raw, dict):
            return StructuredSnapshot(data=raw)
        if isinstance(raw, str):
            if not raw.strip():
                return StructuredSnapshot()
            try:
                decoded = json.loads(raw)
            except ValueError:
                logger.debug("Canvas content is not JSON, keeping it as text")
                return PlainText(text=raw)
            if isinstance(decoded, dict):
                return StructuredSnapshot(data=decoded)
            return PlainText(text=raw)
    else:
        if isinstance(raw, str):
            return PlainText(text=raw)
        if isinstance(raw, dict):
            return StructuredSnapshot(data=raw)

    raise MalformedRecordError(f"Unsupported {leaf_type} content of type {type(raw).__name__}")


def to_content(value: Any, leaf_type: LeafType) -> Content:
    """Resolve a value arriving from an editor; resolved content passes through."""
    if isinstance(value, (PlainText, StructuredSnapshot)):
        return value
    return decode(value, leaf_type)


def encode(content: Content, leaf_type: LeafType) -> Any:
    """Raw value for the record's content field (serialized later with the record)"""
    if isinstance(content, StructuredSnapshot):
        if leaf_type == "note":
            logger.debug("Writing snapshot content to a note record")
        return content.data
    return content.text


def embedded_created_at(content: Optional[Content]) -> Optional[str]:
    """Creation time some canvas snapshots carry inside their own payload"""
    if isinstance(content, StructuredSnapshot):
        value = content.data.get("createdAt")
        if isinstance(value, str):
            return value
    return None


def loads_record(text: str, path: Optional[str] = None) -> Record:
    """
    Parse a record file.

    Raises:
        MalformedRecordError: on invalid JSON or a missing/invalid field
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedRecordError(f"Invalid JSON: {e}", path=path)

    if not isinstance(data, dict):
        raise MalformedRecordError("Record is not a JSON object", path=path)

    try:
        return Record.model_validate(data)
    except ValidationError as e:
        raise MalformedRecordError(f"Invalid record: {e.errors()[0]['msg']}", path=path)


def dumps_record(record: Record) -> str:
    """The single serialization step for a record and its content"""
    return json.dumps(record.model_dump(by_alias=True, exclude_none=True), indent=2, ensure_ascii=False)
