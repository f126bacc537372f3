"""Tagged view over the free-form additional_metadata text of a content."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

FILE_NAME_KEY = "fileName"


@dataclass(frozen=True)
class ValidDocument:
    """additional_metadata parsed as a JSON object; key order is preserved."""
    fields: Dict[str, Any]

    def get_file_name(self) -> Optional[str]:
        value = self.fields.get(FILE_NAME_KEY)
        return value if isinstance(value, str) else None

    def with_file_name(self, file_name: str) -> "ValidDocument":
        fields = dict(self.fields)
        fields[FILE_NAME_KEY] = file_name
        return ValidDocument(fields=fields)

    def serialize(self) -> str:
        return json.dumps(self.fields, ensure_ascii=False)


@dataclass(frozen=True)
class UnparseableDocument:
    """additional_metadata that is absent, null, malformed or not an object."""
    raw: Optional[str]


MetadataDocument = Union[ValidDocument, UnparseableDocument]


def parse_metadata_document(raw: Optional[str]) -> MetadataDocument:
    """
    Classify stored metadata text without ever raising.

    Args:
        raw: additional_metadata as stored

    Returns:
        ValidDocument for a JSON object, UnparseableDocument for anything else
    """
    if raw is None:
        return UnparseableDocument(raw=None)

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        return UnparseableDocument(raw=raw)

    if not isinstance(parsed, dict):
        return UnparseableDocument(raw=raw)

    return ValidDocument(fields=parsed)


def new_document(file_name: str) -> ValidDocument:
    return ValidDocument(fields={FILE_NAME_KEY: file_name})


def resolve_file_name(content_id: str, raw: Optional[str]) -> str:
    """
    File name to offer for download: fileName when set, else a name derived from the id.
    """
    document = parse_metadata_document(raw)
    if isinstance(document, ValidDocument):
        file_name = document.get_file_name()
        if file_name:
            return file_name
    return f"content-{content_id[:8]}"
