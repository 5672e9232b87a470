"""Corpus file contract.

The corpus is the single JSON document every run loads and rewrites, and that
the report/dashboard readers consume. This module defines:
- A JSON Schema (for validation on load and before save)
- Helpers to build the document from records

Important:
- Older corpora used `metaDescription` instead of `description` and `""` for a
  missing image; both still validate.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from jsonschema import Draft202012Validator

from contentscout.ingestion.content_types import ContentRecord


_NULLABLE_STRING = {"type": ["string", "null"]}

CONTENT_RECORD_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["id", "url", "contentType", "targetAudience", "firstSeen", "lastChecked"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "url": {"type": "string", "minLength": 1},
        "title": {"type": "string"},
        "description": {"type": "string"},
        "metaDescription": {"type": "string"},
        "publishDate": {
            "anyOf": [
                {"type": "null"},
                {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
            ]
        },
        "contentType": {"type": "string", "minLength": 1},
        "categories": {"type": "array", "items": {"type": "string"}},
        "targetAudience": {"type": "array", "minItems": 1, "items": {"type": "string", "minLength": 1}},
        "featuredImage": _NULLABLE_STRING,
        "firstSeen": {"type": "string", "minLength": 1},
        "lastChecked": {"type": "string", "minLength": 1},
        "isNew": {"type": "boolean"},
    },
    "additionalProperties": True,
}

CORPUS_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["lastUpdated", "totalContent", "content"],
    "properties": {
        "lastUpdated": {"type": "string", "minLength": 1},
        "totalContent": {"type": "integer", "minimum": 0},
        "content": {"type": "array", "items": CONTENT_RECORD_SCHEMA},
        "summary": {"type": "object"},
    },
    "additionalProperties": True,
}


_VALIDATOR = Draft202012Validator(CORPUS_SCHEMA)


def validate_corpus(payload: Dict[str, Any]) -> List[str]:
    """Return a list of human-readable validation errors (empty means valid)."""
    errors = []
    for e in sorted(_VALIDATOR.iter_errors(payload), key=lambda x: [str(p) for p in x.path]):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    return errors


def corpus_document(
    records: Sequence[ContentRecord],
    *,
    last_updated: str,
    summary: Dict[str, Any],
) -> Dict[str, Any]:
    return {
        "lastUpdated": last_updated,
        "totalContent": len(records),
        "content": [r.to_dict() for r in records],
        "summary": summary,
    }


def records_from_document(payload: Dict[str, Any]) -> List[ContentRecord]:
    items = payload.get("content") or []
    return [ContentRecord.from_dict(it) for it in items if isinstance(it, dict)]
