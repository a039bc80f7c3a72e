"""
Field name -> Feishu field id translation.

Field ids are assigned by Feishu when a table is created and change if the
table is re-created, so writes always go through the map of the target
table. Names missing from the map pass through unchanged, which keeps
freshly created tables (map not fetched yet) writable.
"""
from typing import Any, Dict, Iterable, Optional


def translate_fields(mapping: Optional[Dict[str, str]], fields: Dict[str, Any]) -> Dict[str, Any]:
    if not mapping:
        return dict(fields)
    return {mapping.get(name) or name: value for name, value in fields.items()}


def build_field_map(items: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Returns {field_name: field_id} from a list-fields payload."""
    result: Dict[str, str] = {}
    for field in items:
        name = field.get("field_name")
        field_id = field.get("field_id") or field.get("id")
        if name and field_id:
            result[name] = field_id
    return result


class FieldMaps:
    """Per-table field maps keyed by logical table name."""

    def __init__(self, maps: Optional[Dict[str, Dict[str, str]]] = None):
        self._maps: Dict[str, Dict[str, str]] = dict(maps or {})

    def set(self, table: str, mapping: Dict[str, str]):
        self._maps[table] = dict(mapping)

    def get(self, table: str) -> Dict[str, str]:
        return dict(self._maps.get(table, {}))

    def clear(self):
        self._maps.clear()

    def translate(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return translate_fields(self._maps.get(table), fields)
